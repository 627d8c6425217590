from typing import Any, Callable, Dict, Optional
import logging
from postgrest.exceptions import APIError
from supabase import Client
from caja.errors import PersistenceError, TokenCollision
from caja.infra import supabase_client
from caja.infra.rows import to_wire
from caja.infra.supabase_errors import UNIQUE_VIOLATION, api_error_code
from caja.receipts.models import ReceiptLink

logger = logging.getLogger(__name__)


class SupabaseReceiptLinkStore:
    """Table receipt_links: append-only, token unique."""

    def __init__(self, client_factory: Optional[Callable[[], Client]] = None):
        self._client_factory = client_factory

    def _db(self) -> Client:
        if self._client_factory:
            return self._client_factory()
        return supabase_client.get_service_supabase()

    def insert_receipt_link(self, link: Dict[str, Any]) -> ReceiptLink:
        # Un doublon (23505) ne doit jamais écraser le lien existant
        try:
            res = self._db().table("receipt_links").insert(to_wire(link)).execute()
            data = res.data or []
        except APIError as e:
            if api_error_code(e) == UNIQUE_VIOLATION:
                logger.error("Collision de token de reçu (sale_id=%s)", link.get("sale_id"))
                raise TokenCollision("Recibo no disponible") from e
            logger.exception("Erreur insert_receipt_link: %s", e)
            raise PersistenceError("No se pudo generar el recibo") from e
        except Exception as e:
            logger.exception("Erreur insert_receipt_link: %s", e)
            raise PersistenceError("No se pudo generar el recibo") from e
        row = data[0] if isinstance(data, list) and data else link
        return ReceiptLink.from_row(row if isinstance(row, dict) else link)

    def find_receipt_link(self, token: str) -> Optional[ReceiptLink]:
        try:
            res = (
                self._db()
                .table("receipt_links")
                .select("token, sale_id, business_id, created_by, created_at")
                .eq("token", token)
                .limit(1)
                .execute()
            )
            rows = res.data or []
        except Exception as e:
            logger.exception("Erreur find_receipt_link: %s", e)
            raise PersistenceError("Impossible de lire le reçu") from e
        return ReceiptLink.from_row(rows[0]) if rows else None
