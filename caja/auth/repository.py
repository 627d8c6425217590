from typing import Any, Callable, Dict, Iterable, Optional
import logging
from supabase import Client
from caja.errors import PersistenceError
from caja.infra import supabase_client

logger = logging.getLogger(__name__)


def _display_name(email: Optional[str], metadata: Optional[Dict[str, Any]]) -> str:
    return str((metadata or {}).get("full_name") or email or "Usuario")


class SupabaseIdentityStore:
    """
    Identité via Supabase Auth (GoTrue) et noms d'affichage via la table profiles.
    """

    def __init__(
        self,
        auth_client_factory: Optional[Callable[[], Client]] = None,
        client_factory: Optional[Callable[[], Client]] = None,
    ):
        self._auth_client_factory = auth_client_factory
        self._client_factory = client_factory

    def _auth(self) -> Client:
        if self._auth_client_factory:
            return self._auth_client_factory()
        return supabase_client.get_supabase()

    def _db(self) -> Client:
        if self._client_factory:
            return self._client_factory()
        return supabase_client.get_service_supabase()

    def get_user_from_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Récupère et normalise l'utilisateur depuis supabase.auth.get_user(access_token)."""
        res = self._auth().auth.get_user(token)
        user = getattr(res, "user", None) or {}
        if not isinstance(user, dict):
            user = {
                "id": getattr(user, "id", None),
                "email": getattr(user, "email", None),
                "user_metadata": getattr(user, "user_metadata", None),
            }
        if not user.get("id"):
            return None
        return {
            "id": str(user["id"]),
            "email": user.get("email"),
            "display_name": _display_name(user.get("email"), user.get("user_metadata")),
        }

    def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = sorted({str(i) for i in user_ids if i})
        if not ids:
            return {}
        try:
            res = (
                self._db()
                .table("profiles")
                .select("id, full_name")
                .in_("id", ids)
                .execute()
            )
            rows = res.data or []
        except Exception as e:
            logger.exception("Erreur get_display_names: %s", e)
            raise PersistenceError("Impossible de charger les profils") from e
        return {str(r["id"]): str(r["full_name"]) for r in rows if r.get("id") and r.get("full_name")}
