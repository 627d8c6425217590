"""
Couche service des ventes.

SaleCommitService: enregistre une vente (en-tête puis lignes) puis décrémente le stock.
- Validation: panier non vide, total > 0, référence obligatoire pour card/transfer/mixed.
- En-tête → lignes → stock, strictement dans cet ordre.
- Une fois l'en-tête écrit, la vente est un fait financier: aucune annulation automatique.
  Les échecs en aval (lignes, stock) sont rapportés à part dans CommitResult et journalisés
  comme anomalie de réconciliation; la vente reste déclarée enregistrée.
- Le stock est écrit en lecture-calcul-écriture: max(0, stock_courant - qté_vendue).
  Deux terminaux vendant la dernière unité en même temps peuvent tous deux réussir
  (dernier écrit gagne sur le champ stock).

recent_sales: ventes d'aujourd'hui et d'hier dans le fuseau du commerce.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from caja.businesses.models import Business
from caja.cart.store import CartLine
from caja.errors import EmptyCart, InvalidTotal, MissingReference, PersistenceError
from caja.infra.stores import ProductStore, SaleStore
from caja.reports.timezones import local_date, local_range_bounds, resolve_zone, today_local
from caja.sales import payment_methods
from caja.sales.models import Sale, SaleItem
from caja.sales.notes import encode_reference_note, parse_reference
from caja.utils.money import ZERO, as_number, non_negative

logger = logging.getLogger(__name__)

SALE_STATUS_PAID = "paid"


@dataclass(frozen=True)
class CommitResult:
    sale: Sale
    items_error: Optional[PersistenceError] = None
    unreconciled_product_ids: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def stock_reconciled(self) -> bool:
        return not self.unreconciled_product_ids

    @property
    def complete(self) -> bool:
        return self.items_error is None and self.stock_reconciled


def compute_totals(lines: Sequence[CartLine], discount: Any = 0) -> Tuple[Decimal, Decimal, Decimal]:
    subtotal = sum((line.line_total for line in lines), ZERO)
    clamped = non_negative(discount)
    total = subtotal - clamped
    return subtotal, clamped, (total if total > ZERO else ZERO)


class SaleCommitService:
    def __init__(self, sales: SaleStore, products: ProductStore):
        self._sales = sales
        self._products = products

    def commit(
        self,
        *,
        business_id: str,
        created_by: Optional[str],
        lines: Sequence[CartLine],
        payment_method: str,
        reference: Optional[str] = None,
        discount: Any = 0,
    ) -> CommitResult:
        """
        Produit exactement une vente à partir d'un snapshot du panier.
        - Lève EmptyCart / InvalidTotal / MissingReference avant toute écriture.
        - Lève PersistenceError si l'en-tête n'a pas pu être écrit (rien n'est enregistré).
        - Ne vide pas le panier: c'est à l'appelant de le faire (machine d'état).
        """
        lines = list(lines)
        if not lines:
            raise EmptyCart("El carrito está vacío")
        subtotal, clamped, total = compute_totals(lines, discount)
        if total <= ZERO:
            raise InvalidTotal("El total debe ser mayor a 0")

        method = payment_methods.normalize(payment_method)
        ref = (reference or "").strip()
        if payment_methods.requires_reference(method) and not ref:
            raise MissingReference("Captura la referencia / folio del pago")

        header = {
            "business_id": business_id,
            "created_by": created_by,
            "status": SALE_STATUS_PAID,
            "payment_method": method,
            "subtotal": subtotal,
            "discount": clamped,
            "tax": ZERO,
            "total": total,
            "note": encode_reference_note(ref) if payment_methods.requires_reference(method) else None,
        }
        sale = self._sales.insert_sale(header)

        item_rows = [
            {
                "sale_id": sale.id,
                "product_id": line.product_id,
                "name": line.name,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "line_total": line.line_total,
            }
            for line in lines
        ]
        items_error: Optional[PersistenceError] = None
        try:
            self._sales.insert_sale_items(item_rows)
        except PersistenceError as e:
            items_error = e

        unreconciled = self._reconcile_stock(business_id, lines)

        if items_error is not None or unreconciled:
            logger.error(
                "Vente %s enregistrée avec anomalie: lignes=%s, stock non réconcilié=%s",
                sale.id,
                "échec" if items_error is not None else "ok",
                ",".join(unreconciled) or "-",
            )
        else:
            logger.info("Vente %s enregistrée (%s, total=%s)", sale.id, method, total)

        committed = sale.model_copy(update={"items": [SaleItem.from_row(r) for r in item_rows]})
        return CommitResult(sale=committed, items_error=items_error, unreconciled_product_ids=tuple(unreconciled))

    def _reconcile_stock(self, business_id: str, lines: Sequence[CartLine]) -> List[str]:
        """
        Décrémente le stock de chaque produit vendu (borné à 0).
        Retourne les product_id non réconciliés (lecture/écriture échouée ou produit introuvable).
        """
        sold: Dict[str, int] = {}
        for line in lines:
            sold[line.product_id] = sold.get(line.product_id, 0) + line.quantity
        try:
            levels = self._products.get_stock_levels(business_id, list(sold))
        except PersistenceError:
            return list(sold)

        unreconciled: List[str] = []
        for product_id, qty in sold.items():
            if product_id not in levels:
                logger.warning("Produit %s introuvable lors de la mise à jour du stock", product_id)
                unreconciled.append(product_id)
                continue
            try:
                self._products.update_stock(business_id, product_id, max(0, levels[product_id] - qty))
            except PersistenceError:
                unreconciled.append(product_id)
        return unreconciled


def sale_summary(sale: Sale) -> Dict[str, Any]:
    return {
        "id": sale.id,
        "folio": sale.short_id,
        "created_at": sale.created_at.isoformat(),
        "payment_method": sale.payment_method,
        "payment_label": payment_methods.label(sale.payment_method),
        "reference": parse_reference(sale.note),
        "subtotal": as_number(sale.subtotal),
        "discount": as_number(sale.discount),
        "total": as_number(sale.total),
        "item_count": sale.item_count,
    }


def recent_sales(sales_store: SaleStore, business: Business, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Ventes d'aujourd'hui et d'hier (jours locaux du commerce), plus récentes d'abord.
    Chaque entrée porte un libellé relatif: "hoy" ou "ayer".
    """
    tz = resolve_zone(business.timezone)
    today = today_local(tz, now)
    yesterday = today - timedelta(days=1)
    start, end = local_range_bounds(yesterday, today, tz)
    sales = sales_store.list_sales(business.id, start, end)
    out: List[Dict[str, Any]] = []
    for sale in sorted(sales, key=lambda s: s.created_at, reverse=True):
        entry = sale_summary(sale)
        entry["day"] = "hoy" if local_date(sale.created_at, tz) == today else "ayer"
        out.append(entry)
    return out
