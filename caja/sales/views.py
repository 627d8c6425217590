"""
Endpoints API des ventes: historique récent du commerce (aujourd'hui / hier, fuseau du commerce).
"""
from fastapi import APIRouter, Depends, Request
from caja.businesses.models import Business
from caja.sales.service import recent_sales
from caja.utils.security import get_stores, require_business

router = APIRouter(prefix="/api/v1/sales", tags=["Sales"])

@router.get("/recent")
def list_recent_sales(request: Request, business: Business = Depends(require_business)):
    """
    Ventes d'aujourd'hui et d'hier, plus récentes d'abord.
    - Retour: [{id, folio, created_at, payment_method, payment_label, reference, total, item_count, day}]
    """
    return recent_sales(get_stores(request).sales, business)
