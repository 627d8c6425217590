"""
Agrégations de reporting, chacune en O(n) sur l'ensemble de ventes filtré.

Fonctions pures et indépendantes (aucun accumulateur partagé entre appels):
- daily_series: total par jour local, ordre chronologique
- method_distribution: total par moyen de paiement, ordre canonique puis inconnus
- top_products: quantités par nom de produit, top N, égalités dans l'ordre de rencontre
- employee_performance: ventes / revenu / articles par employé, revenu décroissant
- projection: moyenne glissante des derniers jours de la série quotidienne x horizon
"""
from collections import Counter
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from caja.reports.timezones import local_date
from caja.sales import payment_methods
from caja.sales.models import Sale
from caja.utils.money import ZERO, to_money

UNASSIGNED_EMPLOYEE = "Sin asignar"
UNNAMED_PRODUCT = "Producto"


@dataclass(frozen=True)
class EmployeeAggregate:
    label: str
    sale_count: int
    total_income: Decimal
    total_items: int

    @property
    def average_ticket(self) -> Decimal:
        if not self.sale_count:
            return ZERO
        return to_money(self.total_income / self.sale_count)


def short_id(value: Optional[str]) -> str:
    return str(value or "").split("-")[0].upper()


def employee_label(created_by: Optional[str], names: Dict[str, str]) -> str:
    if not created_by:
        return UNASSIGNED_EMPLOYEE
    return names.get(created_by) or f"Emp {short_id(created_by)}"


def daily_series(sales: Iterable[Sale], tz: ZoneInfo) -> List[Tuple[date, Decimal]]:
    totals: Dict[date, Decimal] = {}
    for sale in sales:
        day = local_date(sale.created_at, tz)
        totals[day] = totals.get(day, ZERO) + sale.total
    return sorted(totals.items())


def method_distribution(sales: Iterable[Sale]) -> List[Tuple[str, Decimal]]:
    totals: Dict[str, Decimal] = {}
    for sale in sales:
        method = (sale.payment_method or payment_methods.CASH).strip()
        totals[method] = totals.get(method, ZERO) + sale.total
    return [(m, totals[m]) for m in payment_methods.canonical_sort(totals)]


def top_products(sales: Iterable[Sale], limit: int) -> List[Tuple[str, int]]:
    counts: Counter = Counter()
    for sale in sales:
        for item in sale.items:
            name = item.name or item.product_id or UNNAMED_PRODUCT
            counts[name] += item.quantity or 1
    # sorted() est stable: à quantité égale, l'ordre de première rencontre est conservé
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return ranked[: max(0, limit)]


def employee_performance(sales: Iterable[Sale], names: Optional[Dict[str, str]] = None) -> List[EmployeeAggregate]:
    names = names or {}
    buckets: Dict[str, List] = {}
    for sale in sales:
        label = employee_label(sale.created_by, names)
        rec = buckets.setdefault(label, [0, ZERO, 0])
        rec[0] += 1
        rec[1] += sale.total
        rec[2] += sum((i.quantity or 1) for i in sale.items)
    aggregates = [
        EmployeeAggregate(label=label, sale_count=rec[0], total_income=rec[1], total_items=rec[2])
        for label, rec in buckets.items()
    ]
    return sorted(aggregates, key=lambda a: a.total_income, reverse=True)


def projection(daily_values: Sequence[Decimal], window: int, horizon: int) -> Decimal:
    """Moyenne des `window` derniers totaux quotidiens (ou moins) x `horizon`; 0 sans données."""
    last = list(daily_values)[-window:] if window > 0 else []
    if not last:
        return ZERO
    return to_money(sum(last, ZERO) / len(last) * horizon)


def total_income(sales: Iterable[Sale]) -> Decimal:
    return sum((s.total for s in sales), ZERO)


def average_ticket(income: Decimal, count: int) -> Decimal:
    return to_money(income / count) if count else ZERO
