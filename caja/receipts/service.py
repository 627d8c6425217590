"""
Couche service des reçus partageables.

- issue: génère un token opaque (secrets.token_urlsafe, >= 128 bits) lié à une vente et le persiste.
  Une collision est signalée (TokenCollision), jamais écrasée; pas de boucle de retry.
- resolve: token -> {business, sale}; InvalidToken si le token, la vente ou le commerce
  est introuvable (jamais de reçu partiellement rempli).
- receipt_view: vue publique (aucun identifiant interne hormis le folio court).
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode
import logging
import secrets

from caja.businesses.models import Business
from caja.config import BASE_URL, RECEIPT_PATH, RECEIPT_TOKEN_BYTES
from caja.errors import InvalidToken
from caja.infra.stores import BusinessDirectory, ReceiptLinkStore, SaleStore
from caja.reports.timezones import resolve_zone
from caja.sales import payment_methods
from caja.sales.models import Sale
from caja.sales.notes import parse_reference
from caja.utils.money import as_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedReceipt:
    business: Business
    sale: Sale


def new_token(nbytes: int = RECEIPT_TOKEN_BYTES) -> str:
    return secrets.token_urlsafe(max(16, nbytes))


def share_url(token: str, base_url: Optional[str] = None) -> str:
    """URL publique du reçu: <BASE_URL>/recibo?t=<token>."""
    base = (base_url or BASE_URL).rstrip("/")
    return f"{base}{RECEIPT_PATH}?{urlencode({'t': token})}"


class ReceiptTokenService:
    def __init__(self, links: ReceiptLinkStore, sales: SaleStore, businesses: BusinessDirectory):
        self._links = links
        self._sales = sales
        self._businesses = businesses

    def issue(self, sale_id: str, business_id: str, created_by: Optional[str]) -> str:
        token = new_token()
        self._links.insert_receipt_link(
            {
                "token": token,
                "sale_id": sale_id,
                "business_id": business_id,
                "created_by": created_by,
            }
        )
        logger.info("Reçu émis pour la vente %s", sale_id)
        return token

    def resolve(self, token: str) -> ResolvedReceipt:
        cleaned = (token or "").strip()
        if not cleaned:
            raise InvalidToken("Recibo no disponible")
        link = self._links.find_receipt_link(cleaned)
        if link is None:
            raise InvalidToken("Recibo no disponible")
        sale = self._sales.get_sale(link.sale_id, link.business_id)
        business = self._businesses.get_business(link.business_id)
        if sale is None or business is None:
            logger.warning("Lien de reçu orphelin (sale_id=%s)", link.sale_id)
            raise InvalidToken("Recibo no disponible")
        return ResolvedReceipt(business=business, sale=sale)


def receipt_view(resolved: ResolvedReceipt) -> Dict[str, Any]:
    """Données affichables d'un reçu pour un visiteur anonyme."""
    sale = resolved.sale
    business = resolved.business
    tz = resolve_zone(business.timezone)
    local_at = sale.created_at.astimezone(tz)
    return {
        "business": business.public_attributes(),
        "folio": sale.short_id,
        "date": local_at.strftime("%Y-%m-%d %H:%M"),
        "created_at": sale.created_at.isoformat(),
        "payment_method": sale.payment_method,
        "payment_label": payment_methods.label(sale.payment_method),
        "reference": parse_reference(sale.note),
        "note": sale.note,
        "status": sale.status,
        "subtotal": as_number(sale.subtotal),
        "discount": as_number(sale.discount),
        "tax": as_number(sale.tax),
        "total": as_number(sale.total),
        "items": [
            {
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": as_number(item.unit_price),
                "line_total": as_number(item.line_total),
            }
            for item in sale.items
        ],
    }
