"""
Helpers monétaires: tout montant manipulé par le moteur est un Decimal arrondi au centime.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """
    Convertit une valeur (str|float|int|Decimal|None) en Decimal au centime.
    - Retourne 0.00 si la conversion est impossible (valeur vide ou non numérique).
    - Les float passent par str() pour éviter les artefacts binaires (0.1 -> 0.1, pas 0.1000000000000000055).
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return ZERO


def non_negative(value: Any) -> Decimal:
    """Montant clampé à zéro (les remises négatives valent 0)."""
    amount = to_money(value)
    return amount if amount > ZERO else ZERO


def as_number(value: Decimal) -> float:
    """Sérialisation JSON des montants (les clients attendent des nombres)."""
    return float(value)
