"""
Endpoints API de la caisse (terminal): catalogue, panier et checkout.
- Sécurité: toutes les routes requièrent une identité (utilisateur + commerce).
- Terminal: en-tête X-Terminal-Id (par défaut "default"); un panier et un checkout par terminal.
- Erreurs métier (stock, validation, état) converties en JSON {"detail", "code"} par le handler PosError.
"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel

from caja.checkout.terminals import TerminalRegistry, TerminalSession
from caja.products.models import ProductSnapshot
from caja.products.service import search_products
from caja.utils.money import as_number
from caja.utils.rate_limit import optional_rate_limit
from caja.utils.security import Identity, require_identity

router = APIRouter(prefix="/api/v1/pos", tags=["POS"])


class AddItemRequest(BaseModel):
    product_id: str


class ScanRequest(BaseModel):
    query: str


class BeginCheckoutRequest(BaseModel):
    payment_method: Optional[str] = None
    discount: float = 0


class ReferenceRequest(BaseModel):
    reference: Optional[str] = None


class TicketChoiceRequest(BaseModel):
    with_ticket: bool = False


def get_terminal(
    request: Request,
    identity: Identity = Depends(require_identity),
    x_terminal_id: Optional[str] = Header(default=None, alias="X-Terminal-Id"),
) -> TerminalSession:
    registry: TerminalRegistry = request.app.state.terminals
    return registry.get(identity.business_id, x_terminal_id)


def _product_payload(p: ProductSnapshot) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "sku": p.sku,
        "barcode": p.barcode,
        "unit": p.unit,
        "unit_price": as_number(p.unit_price),
        "stock_on_hand": p.stock_on_hand,
        "image_url": p.image_url,
    }


def _cart_payload(session: TerminalSession, discount: Any = None) -> Dict[str, Any]:
    pending = session.checkout.pending
    totals = session.cart.totals(discount if discount is not None else (pending.discount if pending else 0))
    return {
        "terminal_id": session.terminal_id,
        "lines": [
            {
                "product_id": line.product_id,
                "name": line.name,
                "unit_price": as_number(line.unit_price),
                "quantity": line.quantity,
                "line_total": as_number(line.line_total),
                "stock_on_hand": line.stock_on_hand,
            }
            for line in session.cart.lines()
        ],
        "totals": {
            "subtotal": as_number(totals.subtotal),
            "discount": as_number(totals.discount),
            "total": as_number(totals.total),
        },
        "checkout_state": session.checkout.state.value,
    }


# --- Catalogue ---

@router.get("/products")
def list_products(q: Optional[str] = Query(default=None), session: TerminalSession = Depends(get_terminal)):
    """Catalogue du terminal, filtré par nom/SKU (contient) ou code-barres (exact)."""
    return [_product_payload(p) for p in search_products(session.catalog, q or "")]


@router.post("/products/refresh")
def refresh_products(session: TerminalSession = Depends(get_terminal)):
    """Recharge l'instantané du catalogue (stock à jour pour les plafonds du panier)."""
    return [_product_payload(p) for p in session.reload_catalog()]


# --- Panier ---

@router.get("/cart")
def get_cart(discount: Optional[float] = Query(default=None), session: TerminalSession = Depends(get_terminal)):
    return _cart_payload(session, discount)


@router.post("/cart/items", dependencies=[Depends(optional_rate_limit(times=120, seconds=60))])
def add_to_cart(payload: AddItemRequest, session: TerminalSession = Depends(get_terminal)):
    session.add(payload.product_id)
    return _cart_payload(session)


@router.post("/cart/scan", dependencies=[Depends(optional_rate_limit(times=120, seconds=60))])
def scan_to_cart(payload: ScanRequest, session: TerminalSession = Depends(get_terminal)):
    """Ajoute le premier produit correspondant à la saisie (lecteur code-barres ou recherche)."""
    session.scan(payload.query)
    return _cart_payload(session)


@router.post("/cart/items/{product_id}/increment")
def increment_item(product_id: str, session: TerminalSession = Depends(get_terminal)):
    session.increment(product_id)
    return _cart_payload(session)


@router.post("/cart/items/{product_id}/decrement")
def decrement_item(product_id: str, session: TerminalSession = Depends(get_terminal)):
    session.decrement(product_id)
    return _cart_payload(session)


@router.delete("/cart/items/{product_id}")
def remove_item(product_id: str, session: TerminalSession = Depends(get_terminal)):
    session.remove(product_id)
    return _cart_payload(session)


@router.delete("/cart")
def clear_cart(session: TerminalSession = Depends(get_terminal)):
    session.clear()
    return _cart_payload(session)


# --- Checkout ---

@router.get("/checkout")
def get_checkout(session: TerminalSession = Depends(get_terminal)):
    return session.checkout.snapshot()


@router.post("/checkout")
def begin_checkout(payload: BeginCheckoutRequest, session: TerminalSession = Depends(get_terminal)):
    """
    Démarre un cobro: moyen de paiement (cash/card/transfer/mixed ou alias espagnol) et remise.
    - card/transfer/mixed -> awaiting_reference
    - cash -> awaiting_ticket_choice
    """
    session.checkout.begin(payload.payment_method, payload.discount)
    return session.checkout.snapshot()


@router.post("/checkout/reference")
def submit_reference(payload: ReferenceRequest, session: TerminalSession = Depends(get_terminal)):
    session.checkout.submit_reference(payload.reference)
    return session.checkout.snapshot()


@router.post("/checkout/ticket", dependencies=[Depends(optional_rate_limit(times=30, seconds=60))])
def choose_ticket(
    payload: TicketChoiceRequest,
    session: TerminalSession = Depends(get_terminal),
    identity: Identity = Depends(require_identity),
):
    """
    Enregistre la vente puis émet le reçu partageable si with_ticket=true.
    - La réponse indique séparément les échecs en aval (lignes, stock, reçu);
      la vente reste enregistrée dans tous ces cas.
    """
    outcome = session.choose_ticket(payload.with_ticket, identity.user_id)
    return {"outcome": outcome.to_dict(), "checkout": session.checkout.snapshot()}


@router.post("/checkout/cancel")
def cancel_checkout(session: TerminalSession = Depends(get_terminal)):
    session.checkout.cancel()
    return session.checkout.snapshot()
