"""
Entités Vente / Ligne de vente.

Une vente est un fait financier immuable: aucune méthode de mise à jour n'est exposée.
Les montants sont des Decimal au centime; `created_at` est toujours un datetime aware (UTC
si la source ne précise pas de fuseau).
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, field_validator
from caja.infra.rows import normalize_row
from caja.utils.money import to_money


def _aware(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class SaleItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    sale_id: Optional[str] = None
    product_id: Optional[str] = None
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    @field_validator("unit_price", "line_total", mode="before")
    @classmethod
    def _money(cls, v: Any) -> Decimal:
        return to_money(v)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SaleItem":
        data = normalize_row(row)
        qty = int(data.get("quantity") or 0)
        unit_price = to_money(data.get("unit_price"))
        line_total = data.get("line_total")
        return cls(
            sale_id=str(data["sale_id"]) if data.get("sale_id") is not None else None,
            product_id=str(data["product_id"]) if data.get("product_id") is not None else None,
            name=str(data.get("name") or ""),
            quantity=qty,
            unit_price=unit_price,
            line_total=line_total if line_total is not None else unit_price * qty,
        )


class Sale(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    business_id: str
    created_by: Optional[str] = None
    created_at: datetime
    payment_method: str = "cash"
    subtotal: Decimal
    discount: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    total: Decimal
    note: Optional[str] = None
    status: str = "paid"
    items: List[SaleItem] = []

    @field_validator("subtotal", "discount", "tax", "total", mode="before")
    @classmethod
    def _money(cls, v: Any) -> Decimal:
        return to_money(v)

    @field_validator("created_at")
    @classmethod
    def _created_at(cls, v: datetime) -> datetime:
        return _aware(v)

    @property
    def short_id(self) -> str:
        """Fragment d'affichage (folio): premier segment de l'uuid, en majuscules."""
        return (self.id or "").split("-")[0].upper()

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    @classmethod
    def from_row(cls, row: Dict[str, Any], items: Optional[List[Dict[str, Any]]] = None) -> "Sale":
        data = normalize_row(row)
        raw_items = items if items is not None else (data.get("sale_items") or [])
        return cls(
            id=str(data.get("id")),
            business_id=str(data.get("business_id")),
            created_by=str(data["created_by"]) if data.get("created_by") else None,
            created_at=data.get("created_at"),
            payment_method=str(data.get("payment_method") or "cash").lower(),
            subtotal=data.get("subtotal"),
            discount=data.get("discount"),
            tax=data.get("tax"),
            total=data.get("total"),
            note=data.get("note") or None,
            status=data.get("status") or "paid",
            items=[SaleItem.from_row(r) for r in raw_items],
        )
