# module caja.products.repository
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging
from supabase import Client
from caja.errors import PersistenceError
from caja.infra import supabase_client
from caja.infra.rows import normalize_row
from caja.products.models import ProductSnapshot

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, business_id, sku, barcode, name, unit, price, stock, image_url, is_active"


class SupabaseProductStore:
    """Produits (table products): catalogue actif et stock disponible."""

    def __init__(self, client_factory: Optional[Callable[[], Client]] = None):
        self._client_factory = client_factory

    def _db(self) -> Client:
        if self._client_factory:
            return self._client_factory()
        return supabase_client.get_service_supabase()

    def list_active_products(self, business_id: str) -> List[ProductSnapshot]:
        try:
            res = (
                self._db()
                .table("products")
                .select(PRODUCT_COLUMNS)
                .eq("business_id", business_id)
                .eq("is_active", True)
                .order("name")
                .execute()
            )
            rows = res.data or []
        except Exception as e:
            logger.exception("Erreur list_active_products(%s): %s", business_id, e)
            raise PersistenceError("Impossible de charger les produits") from e
        return [ProductSnapshot.from_row(r) for r in rows]

    def get_stock_levels(self, business_id: str, product_ids: Iterable[str]) -> Dict[str, int]:
        """
        Lecture groupée du stock courant.
        - Les produits absents (supprimés, autre commerce) ne figurent pas dans le résultat.
        """
        ids = [str(i) for i in product_ids]
        if not ids:
            return {}
        try:
            res = (
                self._db()
                .table("products")
                .select("id, stock")
                .eq("business_id", business_id)
                .in_("id", ids)
                .execute()
            )
            rows = res.data or []
        except Exception as e:
            logger.exception("Erreur get_stock_levels(%s): %s", business_id, e)
            raise PersistenceError("Impossible de lire le stock") from e
        levels: Dict[str, int] = {}
        for row in rows:
            data = normalize_row(row, keys=("stock_on_hand",))
            levels[str(data.get("id"))] = int(data.get("stock_on_hand") or 0)
        return levels

    def update_stock(self, business_id: str, product_id: str, new_quantity: int) -> None:
        try:
            (
                self._db()
                .table("products")
                .update({"stock": max(0, int(new_quantity))})
                .eq("id", product_id)
                .eq("business_id", business_id)
                .execute()
            )
        except Exception as e:
            logger.exception("Erreur update_stock(%s): %s", product_id, e)
            raise PersistenceError("Impossible de mettre à jour le stock") from e
