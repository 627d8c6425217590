"""
Taxonomie d'erreurs du moteur de caisse.

Chaque erreur porte un message lisible par l'opérateur, un code stable (pour le front)
et le statut HTTP utilisé par le handler FastAPI (voir caja.app_setup.exception_handlers).
- ValidationError: panier vide, total non positif, référence manquante, plage invalide
- StockError: rupture ou dépassement du stock connu (bloque seulement la mutation du panier)
- PersistenceError: échec réseau/store; l'état de paiement en attente est conservé
- TokenError: reçu introuvable ou collision de token (jamais de détail interne côté public)
- CheckoutStateError: transition interdite depuis l'état courant
"""
from typing import Optional


class PosError(Exception):
    code = "pos_error"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(PosError):
    code = "validation_error"


class EmptyCart(ValidationError):
    code = "empty_cart"


class InvalidTotal(ValidationError):
    code = "invalid_total"


class MissingReference(ValidationError):
    code = "missing_reference"


class InvalidRange(ValidationError):
    code = "invalid_range"


class UnknownProduct(ValidationError):
    code = "unknown_product"
    status_code = 404


class StockError(PosError):
    code = "stock_error"
    status_code = 409


class OutOfStock(StockError):
    code = "out_of_stock"


class ExceedsStock(StockError):
    code = "exceeds_stock"


class PersistenceError(PosError):
    code = "persistence_error"
    status_code = 503


class TokenError(PosError):
    code = "token_error"
    status_code = 404


class InvalidToken(TokenError):
    code = "invalid_token"


class TokenCollision(TokenError):
    code = "token_collision"


class CheckoutStateError(PosError):
    code = "invalid_transition"
    status_code = 409


class CheckoutBusy(CheckoutStateError):
    code = "commit_in_flight"
