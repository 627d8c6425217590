# module caja.sales.repository
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging
from supabase import Client
from caja.errors import PersistenceError
from caja.infra import supabase_client
from caja.infra.rows import to_wire
from caja.sales.models import Sale

logger = logging.getLogger(__name__)

SALE_COLUMNS = "id, business_id, created_by, created_at, status, payment_method, subtotal, discount, tax, total, note"
SALE_ITEM_COLUMNS = "sale_id, product_id, name, qty, unit_price, line_total"


def _item_payload(item: Dict[str, Any]) -> Dict[str, Any]:
    """La colonne historique de sale_items est `qty` (pas `quantity`)."""
    data = dict(item)
    if "quantity" in data:
        data["qty"] = data.pop("quantity")
    data.setdefault("cost", 0)
    return to_wire(data)


class SupabaseSaleStore:
    """Ventes (sales) et lignes de vente (sale_items)."""

    def __init__(self, client_factory: Optional[Callable[[], Client]] = None):
        self._client_factory = client_factory

    def _db(self) -> Client:
        if self._client_factory:
            return self._client_factory()
        return supabase_client.get_service_supabase()

    def insert_sale(self, header: Dict[str, Any]) -> Sale:
        try:
            res = self._db().table("sales").insert(to_wire(header)).execute()
            data = res.data or []
        except Exception as e:
            logger.exception("Erreur insert_sale: %s", e)
            raise PersistenceError("No se pudo registrar la venta") from e
        row = data[0] if isinstance(data, list) and data else data
        if not row or not isinstance(row, dict) or not row.get("id"):
            logger.error("insert_sale: réponse vide pour business_id=%s", header.get("business_id"))
            raise PersistenceError("No se pudo registrar la venta")
        return Sale.from_row(row, items=[])

    def insert_sale_items(self, items: List[Dict[str, Any]]) -> None:
        if not items:
            return
        try:
            self._db().table("sale_items").insert([_item_payload(i) for i in items]).execute()
        except Exception as e:
            logger.exception("Erreur insert_sale_items(sale_id=%s): %s", items[0].get("sale_id"), e)
            raise PersistenceError("No se pudieron registrar los productos de la venta") from e

    def list_sales(
        self,
        business_id: str,
        start: datetime,
        end: datetime,
        payment_method: Optional[str] = None,
    ) -> List[Sale]:
        """
        Ventes de [start, end) avec leurs lignes, triées par date croissante.
        - start/end sont des instants aware (convertis en ISO pour PostgREST).
        """
        try:
            q = (
                self._db()
                .table("sales")
                .select(f"{SALE_COLUMNS}, sale_items({SALE_ITEM_COLUMNS})")
                .eq("business_id", business_id)
                .gte("created_at", start.isoformat())
                .lt("created_at", end.isoformat())
            )
            if payment_method:
                q = q.eq("payment_method", payment_method)
            res = q.order("created_at", desc=False).execute()
            rows = res.data or []
        except Exception as e:
            logger.exception("Erreur list_sales(%s): %s", business_id, e)
            raise PersistenceError("Impossible de charger les ventes") from e
        return [Sale.from_row(r) for r in rows]

    def get_sale(self, sale_id: str, business_id: str) -> Optional[Sale]:
        try:
            res = (
                self._db()
                .table("sales")
                .select(f"{SALE_COLUMNS}, sale_items({SALE_ITEM_COLUMNS})")
                .eq("id", sale_id)
                .eq("business_id", business_id)
                .limit(1)
                .execute()
            )
            rows = res.data or []
        except Exception as e:
            logger.exception("Erreur get_sale(%s): %s", sale_id, e)
            raise PersistenceError("Impossible de charger la vente") from e
        return Sale.from_row(rows[0]) if rows else None
