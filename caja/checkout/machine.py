"""
Machine d'état du checkout d'un terminal.

    IDLE -> AWAITING_REFERENCE (card/transfer/mixed) -> AWAITING_TICKET_CHOICE -> COMMITTING -> COMMITTED
    CANCELLED est atteignable depuis tout état antérieur à COMMITTING.

- begin: refuse un panier vide ou un total nul; classe le moyen de paiement.
- submit_reference: une référence vide bloque la transition sans abandonner le checkout.
- choose_ticket: lance l'enregistrement (SaleCommitService) puis, si demandé, l'émission du reçu.
  Le choix du ticket n'influence jamais l'enregistrement de la vente.
- Échec avant l'écriture de l'en-tête: retour à AWAITING_TICKET_CHOICE (ou AWAITING_REFERENCE),
  moyen de paiement et référence conservés pour réessayer.
- Dès que l'en-tête est écrit, la vente est COMMITTED et le panier vidé, même si les lignes ou le
  stock ont échoué (CommitResult le signale); réessayer créerait une vente en double.
- Un seul enregistrement à la fois par terminal: CheckoutBusy pendant COMMITTING.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
import logging
import threading

from caja.cart.store import CartStore
from caja.errors import (
    CheckoutBusy,
    CheckoutStateError,
    EmptyCart,
    InvalidTotal,
    MissingReference,
    PosError,
)
from caja.receipts.service import ReceiptTokenService, share_url
from caja.sales import payment_methods
from caja.sales.service import CommitResult, SaleCommitService, sale_summary
from caja.utils.money import ZERO, as_number, non_negative

logger = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    IDLE = "idle"
    AWAITING_REFERENCE = "awaiting_reference"
    AWAITING_TICKET_CHOICE = "awaiting_ticket_choice"
    COMMITTING = "committing"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


PENDING_STATES = (CheckoutState.AWAITING_REFERENCE, CheckoutState.AWAITING_TICKET_CHOICE)


@dataclass
class PendingCheckout:
    payment_method: str
    reference: Optional[str] = None
    discount: Decimal = ZERO


@dataclass(frozen=True)
class CheckoutOutcome:
    result: CommitResult
    receipt_token: Optional[str] = None
    receipt_url: Optional[str] = None
    receipt_error: Optional[PosError] = None

    def to_dict(self) -> Dict[str, Any]:
        result = self.result
        return {
            "sale": sale_summary(result.sale),
            "committed": True,
            "items_recorded": result.items_error is None,
            "stock_reconciled": result.stock_reconciled,
            "unreconciled_product_ids": list(result.unreconciled_product_ids),
            "receipt": (
                {"token": self.receipt_token, "url": self.receipt_url} if self.receipt_token else None
            ),
            "receipt_error": (
                {"detail": self.receipt_error.message, "code": self.receipt_error.code}
                if self.receipt_error
                else None
            ),
        }


class CheckoutStateMachine:
    def __init__(
        self,
        cart: CartStore,
        commit_service: SaleCommitService,
        receipts: Optional[ReceiptTokenService],
        business_id: str,
        mutex=None,
    ):
        self._cart = cart
        self._commit_service = commit_service
        self._receipts = receipts
        self._business_id = business_id
        # partagé avec le terminal: une mutation du panier et le passage en COMMITTING s'excluent
        self._mutex = mutex or threading.RLock()
        self.state = CheckoutState.IDLE
        self.pending: Optional[PendingCheckout] = None
        self.last_outcome: Optional[CheckoutOutcome] = None

    @property
    def is_committing(self) -> bool:
        return self.state is CheckoutState.COMMITTING

    def ensure_cart_editable(self) -> None:
        if self.is_committing:
            raise CheckoutBusy("Venta en proceso, espera a que termine")

    def begin(self, raw_method: Optional[str], discount: Any = 0) -> CheckoutState:
        with self._mutex:
            self.ensure_cart_editable()
            if self._cart.is_empty():
                raise EmptyCart("El carrito está vacío")
            totals = self._cart.totals(discount)
            if totals.total <= ZERO:
                raise InvalidTotal("El total debe ser mayor a 0")
            method = payment_methods.normalize(raw_method)
            self.pending = PendingCheckout(payment_method=method, discount=non_negative(discount))
            self.state = (
                CheckoutState.AWAITING_REFERENCE
                if payment_methods.requires_reference(method)
                else CheckoutState.AWAITING_TICKET_CHOICE
            )
            return self.state

    def submit_reference(self, reference: Optional[str]) -> CheckoutState:
        with self._mutex:
            self.ensure_cart_editable()
            if self.state not in PENDING_STATES or self.pending is None:
                raise CheckoutStateError("No hay un cobro en curso")
            ref = (reference or "").strip()
            if payment_methods.requires_reference(self.pending.payment_method) and not ref:
                self.state = CheckoutState.AWAITING_REFERENCE
                raise MissingReference("Captura la referencia / folio del pago")
            self.pending.reference = ref or None
            self.state = CheckoutState.AWAITING_TICKET_CHOICE
            return self.state

    def cancel(self) -> CheckoutState:
        """Abandonne le cobro en cours; le panier reste intact."""
        with self._mutex:
            self.ensure_cart_editable()
            if self.state not in (CheckoutState.IDLE,) + PENDING_STATES:
                raise CheckoutStateError("No hay un cobro que cancelar")
            self.pending = None
            self.state = CheckoutState.CANCELLED
            return self.state

    def choose_ticket(self, with_ticket: bool, created_by: Optional[str]) -> CheckoutOutcome:
        with self._mutex:
            self.ensure_cart_editable()
            if self.state is CheckoutState.AWAITING_REFERENCE:
                raise MissingReference("Captura la referencia / folio del pago")
            if self.state is not CheckoutState.AWAITING_TICKET_CHOICE or self.pending is None:
                raise CheckoutStateError("No hay un cobro en curso")
            pending = self.pending
            lines = self._cart.lines()
            self.state = CheckoutState.COMMITTING

        try:
            result = self._commit_service.commit(
                business_id=self._business_id,
                created_by=created_by,
                lines=lines,
                payment_method=pending.payment_method,
                reference=pending.reference,
                discount=pending.discount,
            )
        except MissingReference:
            with self._mutex:
                self.state = CheckoutState.AWAITING_REFERENCE
            raise
        except PosError:
            with self._mutex:
                self.state = CheckoutState.AWAITING_TICKET_CHOICE
            raise
        except Exception:
            with self._mutex:
                self.state = CheckoutState.AWAITING_TICKET_CHOICE
            logger.exception("Erreur inattendue pendant l'enregistrement de la vente")
            raise

        with self._mutex:
            self._cart.clear()
            self.pending = None
            self.state = CheckoutState.COMMITTED

        outcome = CheckoutOutcome(result=result)
        if with_ticket:
            outcome = self._issue_receipt(result, created_by)
        self.last_outcome = outcome
        return outcome

    def _issue_receipt(self, result: CommitResult, created_by: Optional[str]) -> CheckoutOutcome:
        if self._receipts is None:
            return CheckoutOutcome(result=result)
        try:
            token = self._receipts.issue(result.sale.id, self._business_id, created_by)
        except PosError as e:
            # La vente est enregistrée: l'échec du reçu ne la remet pas en cause
            logger.warning("Reçu non émis pour la vente %s: %s", result.sale.id, e.message)
            return CheckoutOutcome(result=result, receipt_error=e)
        return CheckoutOutcome(result=result, receipt_token=token, receipt_url=share_url(token))

    def snapshot(self) -> Dict[str, Any]:
        pending = self.pending
        discount = pending.discount if pending else ZERO
        totals = self._cart.totals(discount)
        return {
            "state": self.state.value,
            "pending": (
                {
                    "payment_method": pending.payment_method,
                    "payment_label": payment_methods.label(pending.payment_method),
                    "reference_required": payment_methods.requires_reference(pending.payment_method),
                    "reference": pending.reference,
                    "discount": as_number(pending.discount),
                }
                if pending
                else None
            ),
            "totals": {
                "subtotal": as_number(totals.subtotal),
                "discount": as_number(totals.discount),
                "total": as_number(totals.total),
            },
            "last_sale": self.last_outcome.to_dict() if self.last_outcome else None,
        }
