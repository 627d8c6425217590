from typing import Callable, Optional
import logging
from supabase import Client
from caja.businesses.models import Business
from caja.errors import PersistenceError
from caja.infra import supabase_client

logger = logging.getLogger(__name__)

BUSINESS_COLUMNS = "id, name, handle, category, owner_id, logo_url, currency, timezone, created_at"


class SupabaseBusinessDirectory:
    """Annuaire des commerces (lecture seule)."""

    def __init__(self, client_factory: Optional[Callable[[], Client]] = None):
        self._client_factory = client_factory

    def _db(self) -> Client:
        if self._client_factory:
            return self._client_factory()
        return supabase_client.get_service_supabase()

    def get_business(self, business_id: str) -> Optional[Business]:
        try:
            res = (
                self._db()
                .table("businesses")
                .select(BUSINESS_COLUMNS)
                .eq("id", business_id)
                .limit(1)
                .execute()
            )
            rows = res.data or []
        except Exception as e:
            logger.exception("Erreur get_business(%s): %s", business_id, e)
            raise PersistenceError("Impossible de charger le commerce") from e
        return Business.from_row(rows[0]) if rows else None

    def get_business_by_owner(self, owner_id: str) -> Optional[Business]:
        # Plusieurs commerces possibles: le plus ancien est le commerce actif
        try:
            res = (
                self._db()
                .table("businesses")
                .select(BUSINESS_COLUMNS)
                .eq("owner_id", owner_id)
                .order("created_at", desc=False)
                .limit(1)
                .execute()
            )
            rows = res.data or []
        except Exception as e:
            logger.exception("Erreur get_business_by_owner(%s): %s", owner_id, e)
            raise PersistenceError("Impossible de charger le commerce") from e
        return Business.from_row(rows[0]) if rows else None
