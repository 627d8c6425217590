"""
Classification des moyens de paiement.

Toute saisie brute (canonique anglais ou alias espagnol de la caisse) est ramenée à
cash / card / transfer / mixed; une valeur inconnue vaut cash.
"""
from typing import Dict, Iterable, List, Optional

CASH = "cash"
CARD = "card"
TRANSFER = "transfer"
MIXED = "mixed"

CANONICAL_ORDER = (CASH, CARD, TRANSFER, MIXED)
REFERENCE_REQUIRED = frozenset({CARD, TRANSFER, MIXED})

ALIASES: Dict[str, str] = {
    "efectivo": CASH,
    "tarjeta": CARD,
    "transferencia": TRANSFER,
    "mixto": MIXED,
}

LABELS: Dict[str, str] = {
    CASH: "Efectivo",
    CARD: "Tarjeta",
    TRANSFER: "Transferencia",
    MIXED: "Mixto",
}


def _key(raw: Optional[str]) -> str:
    return str(raw or "").strip().lower()


def normalize(raw: Optional[str]) -> str:
    key = _key(raw)
    if key in CANONICAL_ORDER:
        return key
    return ALIASES.get(key, CASH)


def normalize_filter(raw: Optional[str]) -> Optional[str]:
    """
    Filtre de reporting: vide -> None (tous), alias -> canonique,
    valeur inconnue conservée telle quelle (elle ne correspondra simplement à aucune vente).
    """
    key = _key(raw)
    if not key or key == "all":
        return None
    return ALIASES.get(key, key)


def requires_reference(method: str) -> bool:
    return method in REFERENCE_REQUIRED


def label(method: Optional[str]) -> str:
    key = _key(method)
    return LABELS.get(key, key.capitalize() if key else LABELS[CASH])


def canonical_sort(methods: Iterable[str]) -> List[str]:
    """Ordre d'affichage fixe (cash, card, transfer, mixed), inconnus ensuite dans l'ordre rencontré."""
    seen = list(dict.fromkeys(methods))
    known = [m for m in CANONICAL_ORDER if m in seen]
    return known + [m for m in seen if m not in CANONICAL_ORDER]
