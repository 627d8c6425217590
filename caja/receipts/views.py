"""
Reçus partageables.
- API (authentifiée): émission d'un reçu pour une vente du commerce courant.
- API publique: lecture JSON d'un reçu par token.
- Web publique: page /recibo?t=<token> (lien partagé, QR code vers la même URL).
Un token inconnu ne révèle jamais de détail interne: "Recibo no disponible".
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from caja.config import RECEIPT_PATH
from caja.errors import PersistenceError, TokenError
from caja.receipts.service import ReceiptTokenService, receipt_view, share_url
from caja.utils.qrcode_utils import receipt_qr_data_uri
from caja.utils.rate_limit import optional_rate_limit
from caja.utils.security import Identity, get_stores, require_identity
from caja.utils.templates import templates

router = APIRouter(prefix="/api/v1/receipts", tags=["Receipts"])
web_router = APIRouter(tags=["Receipts Web"])


class IssueReceiptRequest(BaseModel):
    sale_id: str


def _service(request: Request) -> ReceiptTokenService:
    stores = get_stores(request)
    return ReceiptTokenService(stores.receipts, stores.sales, stores.businesses)


@router.post("", dependencies=[Depends(optional_rate_limit(times=30, seconds=60))])
def issue_receipt(payload: IssueReceiptRequest, request: Request, identity: Identity = Depends(require_identity)):
    """
    Émet un reçu pour une vente déjà enregistrée du commerce courant.
    - 404 si la vente n'appartient pas au commerce
    - Retour: {"token", "url", "qr_code"}
    """
    sale = get_stores(request).sales.get_sale(payload.sale_id, identity.business_id)
    if sale is None:
        raise HTTPException(status_code=404, detail="Venta no encontrada")
    token = _service(request).issue(sale.id, identity.business_id, identity.user_id)
    url = share_url(token)
    return {"token": token, "url": url, "qr_code": receipt_qr_data_uri(url)}


@router.get("/{token}", dependencies=[Depends(optional_rate_limit(times=60, seconds=60))])
def get_receipt(token: str, request: Request):
    view = receipt_view(_service(request).resolve(token))
    view["url"] = share_url(token)
    return view


@web_router.get(RECEIPT_PATH, response_class=HTMLResponse)
def receipt_page(request: Request, t: Optional[str] = Query(default=None)):
    """Page publique du reçu (aucune session requise)."""
    try:
        view = receipt_view(_service(request).resolve(t or ""))
    except TokenError:
        return templates.TemplateResponse(
            request, "receipt.html", {"receipt": None, "error": "Recibo no disponible"}, status_code=404
        )
    except PersistenceError:
        return templates.TemplateResponse(
            request, "receipt.html", {"receipt": None, "error": "Servicio no disponible"}, status_code=503
        )
    url = share_url(t)
    return templates.TemplateResponse(
        request, "receipt.html", {"receipt": view, "url": url, "qr_code": receipt_qr_data_uri(url), "error": None}
    )
