from typing import Iterable, List, Optional
from caja.products.models import ProductSnapshot


def _matches(product: ProductSnapshot, q: str) -> bool:
    return (
        q in product.name.lower()
        or q in (product.sku or "").lower()
        or (product.barcode or "").lower() == q
    )


def search_products(catalog: Iterable[ProductSnapshot], query: str) -> List[ProductSnapshot]:
    """Filtre du catalogue: nom ou SKU contenant la saisie, ou code-barres exact (insensible à la casse)."""
    q = (query or "").strip().lower()
    if not q:
        return list(catalog)
    return [p for p in catalog if _matches(p, q)]


def find_product(catalog: Iterable[ProductSnapshot], query: str) -> Optional[ProductSnapshot]:
    """Premier produit correspondant (ordre du catalogue), None si la saisie est vide ou sans résultat."""
    q = (query or "").strip().lower()
    if not q:
        return None
    return next((p for p in catalog if _matches(p, q)), None)
