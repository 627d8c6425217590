"""
Store local (mode dégradé hors-ligne).

Un seul document JSON contient toutes les tables (businesses, users, products, sales,
sale_items, receipt_links). Le document vit en mémoire derrière un verrou et est réécrit
de manière atomique après chaque écriture. Sans chemin, le store est purement en mémoire
(utilisé par les tests et le développement).

LocalStore implémente toutes les interfaces de caja.infra.stores pour que le moteur
complet fonctionne sans Supabase.
"""
import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from caja.businesses.models import Business
from caja.errors import PersistenceError, TokenCollision
from caja.infra.rows import LEGACY_KEYS, normalize_row, to_wire
from caja.infra.stores import Stores
from caja.products.models import ProductSnapshot
from caja.receipts.models import ReceiptLink
from caja.sales.models import Sale
from caja.utils.atomic_file import write_json_atomic

logger = logging.getLogger(__name__)

TABLES = ("businesses", "users", "products", "sales", "sale_items", "receipt_links")


def _parse_instant(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    elif value:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalStore:
    def __init__(self, path: Optional[str] = None, data: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._path = path
        self._lock = threading.RLock()
        self._data: Dict[str, List[Dict[str, Any]]] = {t: [] for t in TABLES}
        if data is not None:
            for table in TABLES:
                self._data[table] = [dict(r) for r in (data.get(table) or [])]
        elif path and os.path.exists(path):
            self._load()

    @property
    def path(self) -> Optional[str]:
        return self._path

    def _load(self) -> None:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                raw = json.load(f) or {}
        except (OSError, ValueError) as e:
            logger.exception("Lecture du store local impossible (%s): %s", self._path, e)
            raise PersistenceError("Store local illisible") from e
        for table in TABLES:
            self._data[table] = list(raw.get(table) or [])

    def _write(self, mutate: Callable[[Dict[str, List[Dict[str, Any]]]], Any]) -> Any:
        """Applique une mutation puis persiste; en cas d'échec disque, l'état mémoire est restauré."""
        with self._lock:
            backup = copy.deepcopy(self._data)
            result = mutate(self._data)
            if self._path:
                try:
                    write_json_atomic(self._path, self._data)
                except OSError as e:
                    self._data = backup
                    logger.exception("Écriture du store local impossible (%s): %s", self._path, e)
                    raise PersistenceError("Store local indisponible") from e
            return result

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._data[table]]

    # --- Données de démarrage (seed) ---

    def add_business(self, **row: Any) -> Dict[str, Any]:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _now_iso())
        self._write(lambda d: d["businesses"].append(to_wire(row)))
        return row

    def add_user(self, **row: Any) -> Dict[str, Any]:
        """Utilisateur local: {id, email, full_name, token} (token = session d'accès)."""
        row.setdefault("id", str(uuid.uuid4()))
        self._write(lambda d: d["users"].append(to_wire(row)))
        return row

    def add_product(self, **row: Any) -> Dict[str, Any]:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("is_active", True)
        self._write(lambda d: d["products"].append(to_wire(row)))
        return row

    # --- ProductStore ---

    def list_active_products(self, business_id: str) -> List[ProductSnapshot]:
        rows = [normalize_row(r) for r in self._rows("products")]
        active = [
            r for r in rows
            if str(r.get("business_id")) == str(business_id) and r.get("is_active", True) is not False
        ]
        active.sort(key=lambda r: str(r.get("name") or "").lower())
        return [ProductSnapshot.from_row(r) for r in active]

    def get_stock_levels(self, business_id: str, product_ids: Iterable[str]) -> Dict[str, int]:
        wanted = {str(i) for i in product_ids}
        levels: Dict[str, int] = {}
        for row in self._rows("products"):
            data = normalize_row(row)
            pid = str(data.get("id"))
            if pid in wanted and str(data.get("business_id")) == str(business_id):
                levels[pid] = int(data.get("stock_on_hand") or 0)
        return levels

    def update_stock(self, business_id: str, product_id: str, new_quantity: int) -> None:
        def _mutate(d):
            for row in d["products"]:
                data = normalize_row(row)
                if str(data.get("id")) == str(product_id) and str(data.get("business_id")) == str(business_id):
                    # une seule colonne de stock par ligne, quel que soit l'alias d'origine
                    for key in ("stock_on_hand",) + LEGACY_KEYS["stock_on_hand"]:
                        row.pop(key, None)
                    row["stock"] = max(0, int(new_quantity))
        self._write(_mutate)

    # --- SaleStore ---

    def insert_sale(self, header: Dict[str, Any]) -> Sale:
        row = to_wire(header)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _now_iso())
        row.setdefault("status", "paid")
        self._write(lambda d: d["sales"].append(row))
        return Sale.from_row(row, items=[])

    def insert_sale_items(self, items: List[Dict[str, Any]]) -> None:
        rows = [to_wire(i) for i in items]
        self._write(lambda d: d["sale_items"].extend(rows))

    def _items_by_sale(self) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for item in self._rows("sale_items"):
            data = normalize_row(item)
            grouped.setdefault(str(data.get("sale_id")), []).append(data)
        return grouped

    def list_sales(
        self,
        business_id: str,
        start: datetime,
        end: datetime,
        payment_method: Optional[str] = None,
    ) -> List[Sale]:
        items = self._items_by_sale()
        selected = []
        for row in self._rows("sales"):
            data = normalize_row(row)
            if str(data.get("business_id")) != str(business_id):
                continue
            at = _parse_instant(data.get("created_at"))
            if at is None or not (start <= at < end):
                continue
            if payment_method and str(data.get("payment_method") or "cash") != payment_method:
                continue
            selected.append((at, data))
        selected.sort(key=lambda pair: pair[0])
        return [Sale.from_row(data, items=items.get(str(data.get("id")), [])) for _, data in selected]

    def get_sale(self, sale_id: str, business_id: str) -> Optional[Sale]:
        for row in self._rows("sales"):
            data = normalize_row(row)
            if str(data.get("id")) == str(sale_id) and str(data.get("business_id")) == str(business_id):
                return Sale.from_row(data, items=self._items_by_sale().get(str(sale_id), []))
        return None

    # --- ReceiptLinkStore ---

    def insert_receipt_link(self, link: Dict[str, Any]) -> ReceiptLink:
        row = to_wire(link)
        row.setdefault("created_at", _now_iso())

        def _mutate(d):
            if any(r.get("token") == row["token"] for r in d["receipt_links"]):
                logger.error("Collision de token de reçu (sale_id=%s)", row.get("sale_id"))
                raise TokenCollision("Recibo no disponible")
            d["receipt_links"].append(row)

        self._write(_mutate)
        return ReceiptLink.from_row(row)

    def find_receipt_link(self, token: str) -> Optional[ReceiptLink]:
        for row in self._rows("receipt_links"):
            if row.get("token") == token:
                return ReceiptLink.from_row(row)
        return None

    # --- BusinessDirectory ---

    def get_business(self, business_id: str) -> Optional[Business]:
        for row in self._rows("businesses"):
            if str(row.get("id")) == str(business_id):
                return Business.from_row(row)
        return None

    def get_business_by_owner(self, owner_id: str) -> Optional[Business]:
        owned = [normalize_row(r) for r in self._rows("businesses")]
        owned = [r for r in owned if str(r.get("owner_id")) == str(owner_id)]
        if not owned:
            return None
        owned.sort(key=lambda r: str(r.get("created_at") or ""))
        return Business.from_row(owned[0])

    # --- IdentityStore ---

    def get_user_from_token(self, token: str) -> Optional[Dict[str, Any]]:
        for row in self._rows("users"):
            if token and row.get("token") == token:
                return {
                    "id": str(row.get("id")),
                    "email": row.get("email"),
                    "display_name": str(row.get("full_name") or row.get("email") or "Usuario"),
                }
        return None

    def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        wanted = {str(i) for i in user_ids if i}
        return {
            str(r["id"]): str(r["full_name"])
            for r in self._rows("users")
            if str(r.get("id")) in wanted and r.get("full_name")
        }

    def table_counts(self) -> Dict[str, int]:
        with self._lock:
            return {t: len(self._data[t]) for t in TABLES}

    def as_stores(self) -> Stores:
        return Stores(
            backend="local",
            products=self,
            sales=self,
            receipts=self,
            businesses=self,
            users=self,
        )
