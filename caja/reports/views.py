"""
Endpoints API du reporting des ventes.
- Plage en dates locales du commerce (YYYY-MM-DD), bornes incluses; 30 derniers jours par défaut.
- Filtre optionnel par moyen de paiement (canonique ou alias espagnol).
"""
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from caja.businesses.models import Business
from caja.reports.service import ReportingService
from caja.utils.security import get_stores, require_business

router = APIRouter(prefix="/api/v1/reports", tags=["Reports"])

@router.get("/sales")
def sales_report(
    request: Request,
    from_date: Optional[date] = Query(default=None, alias="from"),
    to_date: Optional[date] = Query(default=None, alias="to"),
    method: Optional[str] = Query(default=None),
    business: Business = Depends(require_business),
):
    stores = get_stores(request)
    report = ReportingService(stores.sales, stores.users).sales_report(business, from_date, to_date, method)
    return report.to_dict()
