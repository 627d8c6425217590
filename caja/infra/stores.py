"""
Interfaces des collaborateurs persistants du moteur de caisse et sélection du backend.

- ProductStore / SaleStore / ReceiptLinkStore / BusinessDirectory / IdentityStore:
  contrats consommés par les services (aucune dépendance à Supabase dans le coeur).
- Stores: regroupement injecté dans l'application (app.state.stores).
- build_stores(): choisit Supabase ou le store local (mode dégradé) selon STORE_BACKEND.
Toute erreur d'accès est levée en PersistenceError par les implémentations.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol
import logging

from caja.businesses.models import Business
from caja.products.models import ProductSnapshot
from caja.receipts.models import ReceiptLink
from caja.sales.models import Sale

logger = logging.getLogger(__name__)


class ProductStore(Protocol):
    def list_active_products(self, business_id: str) -> List[ProductSnapshot]: ...

    def get_stock_levels(self, business_id: str, product_ids: Iterable[str]) -> Dict[str, int]: ...

    def update_stock(self, business_id: str, product_id: str, new_quantity: int) -> None: ...


class SaleStore(Protocol):
    def insert_sale(self, header: Dict[str, Any]) -> Sale: ...

    def insert_sale_items(self, items: List[Dict[str, Any]]) -> None: ...

    def list_sales(
        self,
        business_id: str,
        start: datetime,
        end: datetime,
        payment_method: Optional[str] = None,
    ) -> List[Sale]: ...

    def get_sale(self, sale_id: str, business_id: str) -> Optional[Sale]: ...


class ReceiptLinkStore(Protocol):
    def insert_receipt_link(self, link: Dict[str, Any]) -> ReceiptLink: ...

    def find_receipt_link(self, token: str) -> Optional[ReceiptLink]: ...


class BusinessDirectory(Protocol):
    def get_business(self, business_id: str) -> Optional[Business]: ...

    def get_business_by_owner(self, owner_id: str) -> Optional[Business]: ...


class IdentityStore(Protocol):
    def get_user_from_token(self, token: str) -> Optional[Dict[str, Any]]: ...

    def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]: ...


@dataclass
class Stores:
    backend: str
    products: ProductStore
    sales: SaleStore
    receipts: ReceiptLinkStore
    businesses: BusinessDirectory
    users: IdentityStore


def build_stores(backend: Optional[str] = None) -> Stores:
    """
    Construit le bundle de stores.
    - "supabase": repositories PostgREST (client service-role)
    - "local": document JSON unique (LOCAL_STORE_PATH), mode dégradé hors-ligne
    """
    from caja.config import STORE_BACKEND, LOCAL_STORE_PATH

    mode = (backend or STORE_BACKEND or "local").lower()
    if mode == "supabase":
        from caja.products.repository import SupabaseProductStore
        from caja.sales.repository import SupabaseSaleStore
        from caja.receipts.repository import SupabaseReceiptLinkStore
        from caja.businesses.repository import SupabaseBusinessDirectory
        from caja.auth.repository import SupabaseIdentityStore

        logger.info("Store backend: supabase")
        return Stores(
            backend="supabase",
            products=SupabaseProductStore(),
            sales=SupabaseSaleStore(),
            receipts=SupabaseReceiptLinkStore(),
            businesses=SupabaseBusinessDirectory(),
            users=SupabaseIdentityStore(),
        )

    from caja.infra.local_store import LocalStore

    logger.warning("Store backend: local (mode dégradé) -> %s", LOCAL_STORE_PATH or "mémoire")
    store = LocalStore(LOCAL_STORE_PATH or None)
    return store.as_stores()
