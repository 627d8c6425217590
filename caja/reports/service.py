"""
Service de reporting des ventes.

Entrée: commerce (fuseau, devise), plage de dates locales (incluses), filtre de moyen de paiement.
Sortie: KPIs (revenu, nombre de ventes, ticket moyen, projection) et agrégats
(série quotidienne, répartition par moyen, top produits, performance par employé).
Rien n'est persisté: tout est recalculé à chaque requête.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from caja.businesses.models import Business
from caja.config import (
    REPORT_DEFAULT_RANGE_DAYS,
    REPORT_PROJECTION_HORIZON,
    REPORT_PROJECTION_WINDOW,
    REPORT_TOP_PRODUCTS,
)
from caja.errors import PersistenceError
from caja.infra.stores import IdentityStore, SaleStore
from caja.reports import aggregations
from caja.reports.aggregations import EmployeeAggregate
from caja.reports.timezones import default_range, local_range_bounds, resolve_zone
from caja.sales import payment_methods
from caja.utils.money import as_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SalesReport:
    business_id: str
    currency: str
    timezone: str
    from_date: date
    to_date: date
    payment_method: Optional[str]
    income: Decimal
    sale_count: int
    average_ticket: Decimal
    projection: Decimal
    daily: List[Tuple[date, Decimal]]
    methods: List[Tuple[str, Decimal]]
    top_products: List[Tuple[str, int]]
    employees: List[EmployeeAggregate]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "business_id": self.business_id,
            "currency": self.currency,
            "timezone": self.timezone,
            "range": {"from": self.from_date.isoformat(), "to": self.to_date.isoformat()},
            "payment_method": self.payment_method,
            "kpis": {
                "income": as_number(self.income),
                "sales_count": self.sale_count,
                "average_ticket": as_number(self.average_ticket),
                "projection_30d": as_number(self.projection),
            },
            "daily": [{"date": d.isoformat(), "total": as_number(v)} for d, v in self.daily],
            "methods": [
                {"method": m, "label": payment_methods.label(m), "total": as_number(v)}
                for m, v in self.methods
            ],
            "top_products": [{"name": n, "quantity": q} for n, q in self.top_products],
            "employees": [
                {
                    "label": e.label,
                    "sales": e.sale_count,
                    "income": as_number(e.total_income),
                    "items": e.total_items,
                    "average_ticket": as_number(e.average_ticket),
                }
                for e in self.employees
            ],
        }


class ReportingService:
    def __init__(self, sales: SaleStore, users: Optional[IdentityStore] = None):
        self._sales = sales
        self._users = users

    def sales_report(
        self,
        business: Business,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        payment_method: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SalesReport:
        """
        Construit le rapport d'une plage de jours locaux.
        - Dates absentes: les REPORT_DEFAULT_RANGE_DAYS derniers jours (aujourd'hui inclus).
        - InvalidRange si from_date > to_date.
        - PersistenceError si les ventes ne peuvent pas être lues.
        """
        tz = resolve_zone(business.timezone)
        default_from, default_to = default_range(tz, REPORT_DEFAULT_RANGE_DAYS, now)
        end_day = to_date or default_to
        if from_date is not None:
            start_day = from_date
        elif to_date is not None:
            start_day = to_date - (default_to - default_from)
        else:
            start_day = default_from
        start, end = local_range_bounds(start_day, end_day, tz)
        method = payment_methods.normalize_filter(payment_method)

        sales = self._sales.list_sales(business.id, start, end, method)

        daily = aggregations.daily_series(sales, tz)
        income = aggregations.total_income(sales)
        return SalesReport(
            business_id=business.id,
            currency=business.currency,
            timezone=tz.key,
            from_date=start_day,
            to_date=end_day,
            payment_method=method,
            income=income,
            sale_count=len(sales),
            average_ticket=aggregations.average_ticket(income, len(sales)),
            projection=aggregations.projection(
                [v for _, v in daily], REPORT_PROJECTION_WINDOW, REPORT_PROJECTION_HORIZON
            ),
            daily=daily,
            methods=aggregations.method_distribution(sales),
            top_products=aggregations.top_products(sales, REPORT_TOP_PRODUCTS),
            employees=aggregations.employee_performance(sales, self._employee_names(sales)),
        )

    def _employee_names(self, sales) -> Dict[str, str]:
        if self._users is None:
            return {}
        ids = {s.created_by for s in sales if s.created_by}
        try:
            return self._users.get_display_names(ids)
        except PersistenceError:
            # Libellés de repli "Emp XXXX": le rapport reste exact
            logger.warning("Noms d'employés indisponibles, libellés courts utilisés")
            return {}
