"""
Normalisation des lignes renvoyées par les stores.

Les tables historiques exposent parfois plusieurs noms pour la même colonne
(bizId/businessId, price/unit_price, stock/stock_on_hand...). Les adapters
passent chaque ligne par `normalize_row` pour obtenir les noms canoniques;
le coeur métier ne connaît que ces derniers.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

# nom canonique -> alias historiques acceptés (le premier présent gagne)
LEGACY_KEYS: Dict[str, tuple] = {
    "business_id": ("bizId", "businessId", "biz_id"),
    "unit_price": ("price", "unitPrice"),
    "stock_on_hand": ("stock", "stockOnHand"),
    "quantity": ("qty",),
    "payment_method": ("method", "paymentMethod"),
    "created_at": ("createdAt", "date"),
    "created_by": ("createdBy", "user_id"),
    "sale_items": ("items",),
    "sale_id": ("saleId",),
    "product_id": ("productId",),
    "line_total": ("lineTotal",),
    "owner_id": ("ownerId",),
    "logo_url": ("logoUrl", "logo"),
    "image_url": ("imageUrl",),
    "is_active": ("isActive", "active"),
}


def normalize_row(row: Optional[Dict[str, Any]], keys: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """
    Retourne une copie de `row` où les alias historiques sont renommés.
    - Une clé canonique déjà présente (non None) n'est jamais écrasée.
    - `keys` restreint la normalisation à certaines colonnes.
    """
    out: Dict[str, Any] = dict(row or {})
    for canonical, aliases in LEGACY_KEYS.items():
        if keys is not None and canonical not in keys:
            continue
        if out.get(canonical) is not None:
            continue
        for alias in aliases:
            if out.get(alias) is not None:
                out[canonical] = out[alias]
                break
    return out


def to_wire(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Prépare un dict pour l'envoi JSON (Decimal -> float, datetime -> ISO 8601)."""
    out: Dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, Decimal):
            value = float(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[key] = value
    return out
