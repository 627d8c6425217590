from decimal import Decimal
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, field_validator
from caja.infra.rows import normalize_row
from caja.utils.money import to_money


class ProductSnapshot(BaseModel):
    """
    Copie en lecture seule d'un produit au moment du chargement du catalogue.
    Le panier s'appuie sur `stock_on_hand` comme plafond; il ne le modifie jamais.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    unit_price: Decimal
    stock_on_hand: int = 0
    sku: Optional[str] = None
    barcode: Optional[str] = None
    unit: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("unit_price", mode="before")
    @classmethod
    def _money(cls, v: Any) -> Decimal:
        return to_money(v)

    @field_validator("stock_on_hand", mode="before")
    @classmethod
    def _stock(cls, v: Any) -> int:
        try:
            return int(v or 0)
        except (TypeError, ValueError):
            return 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ProductSnapshot":
        data = normalize_row(row)
        return cls(
            id=str(data.get("id")),
            name=str(data.get("name") or ""),
            unit_price=data.get("unit_price"),
            stock_on_hand=data.get("stock_on_hand"),
            sku=data.get("sku") or None,
            barcode=data.get("barcode") or None,
            unit=data.get("unit") or None,
            image_url=data.get("image_url") or None,
        )
