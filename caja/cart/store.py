"""
Panier d'une vente en cours (un terminal = un panier).

- Une ligne par produit (clé product_id), quantité toujours >= 1.
- Le plafond de quantité est le dernier stock connu (snapshot produit à l'ajout, rafraîchi
  par increment quand le catalogue a été rechargé);
  le panier ne modifie jamais le stock lui-même.
- Aucun effet de bord réseau: structure purement en mémoire.
"""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, List, Optional

from caja.errors import ExceedsStock, OutOfStock, UnknownProduct
from caja.products.models import ProductSnapshot
from caja.utils.money import ZERO, non_negative, to_money


@dataclass(frozen=True)
class CartLine:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    stock_on_hand: int

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal


class CartStore:
    def __init__(self):
        self._lines: Dict[str, CartLine] = {}

    def add(self, product: ProductSnapshot) -> CartLine:
        """
        Ajoute une unité du produit.
        - OutOfStock si le stock connu est <= 0
        - ExceedsStock si la quantité déjà au panier atteint le stock connu
        """
        if product.stock_on_hand <= 0:
            raise OutOfStock(f"Sin stock: {product.name}")
        existing = self._lines.get(product.id)
        current = existing.quantity if existing else 0
        if current + 1 > product.stock_on_hand:
            raise ExceedsStock(f"Stock insuficiente para {product.name} (disponible: {product.stock_on_hand})")
        line = CartLine(
            product_id=product.id,
            name=product.name,
            unit_price=product.unit_price,
            quantity=current + 1,
            stock_on_hand=product.stock_on_hand,
        )
        self._lines[product.id] = line
        return line

    def increment(self, product_id: str, product: Optional[ProductSnapshot] = None) -> CartLine:
        """
        Ajoute une unité à une ligne existante.
        - `product`: instantané courant du catalogue; son stock remplace le plafond de la ligne
        """
        line = self._require(product_id)
        if product is not None and product.id == product_id:
            line = replace(line, stock_on_hand=product.stock_on_hand)
            self._lines[product_id] = line
        if line.quantity + 1 > line.stock_on_hand:
            raise ExceedsStock(f"Stock insuficiente para {line.name} (disponible: {line.stock_on_hand})")
        updated = replace(line, quantity=line.quantity + 1)
        self._lines[product_id] = updated
        return updated

    def decrement(self, product_id: str) -> Optional[CartLine]:
        """Retire une unité; à 0 la ligne est supprimée (retourne None)."""
        line = self._require(product_id)
        if line.quantity <= 1:
            del self._lines[product_id]
            return None
        updated = replace(line, quantity=line.quantity - 1)
        self._lines[product_id] = updated
        return updated

    def remove(self, product_id: str) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def totals(self, discount=0) -> CartTotals:
        subtotal = sum((line.line_total for line in self._lines.values()), ZERO)
        clamped = non_negative(discount)
        total = subtotal - clamped
        return CartTotals(subtotal=subtotal, discount=clamped, total=total if total > ZERO else ZERO)

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def get(self, product_id: str) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def _require(self, product_id: str) -> CartLine:
        line = self._lines.get(product_id)
        if line is None:
            raise UnknownProduct("Producto no está en el carrito")
        return line
