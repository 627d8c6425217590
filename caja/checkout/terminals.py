"""
Sessions de terminal.

Le panier et la machine d'état appartiennent à un seul terminal (onglet/poste de caisse).
TerminalRegistry (sur app.state) associe (business_id, terminal_id) à une TerminalSession;
aucune variable globale de module ne porte l'état d'une vente en cours.
Le catalogue est un instantané rechargé au démarrage de la session, sur demande et après
chaque vente enregistrée.
Une session inactive depuis plus de TERMINAL_IDLE_TTL secondes est oubliée au prochain accès
au registre (jamais pendant un enregistrement).
"""
from typing import Callable, Dict, List, Optional, Tuple
import logging
import threading
import time

from caja.cart.store import CartLine, CartStore
from caja.checkout.machine import CheckoutOutcome, CheckoutStateMachine
from caja.config import TERMINAL_IDLE_TTL
from caja.errors import PersistenceError, UnknownProduct
from caja.infra.stores import Stores
from caja.products.models import ProductSnapshot
from caja.products.service import find_product
from caja.receipts.service import ReceiptTokenService
from caja.sales.service import SaleCommitService

logger = logging.getLogger(__name__)

DEFAULT_TERMINAL_ID = "default"


class TerminalSession:
    def __init__(self, business_id: str, terminal_id: str, stores: Stores):
        self.business_id = business_id
        self.terminal_id = terminal_id
        self._stores = stores
        self._lock = threading.RLock()
        self.cart = CartStore()
        self.checkout = CheckoutStateMachine(
            cart=self.cart,
            commit_service=SaleCommitService(stores.sales, stores.products),
            receipts=ReceiptTokenService(stores.receipts, stores.sales, stores.businesses),
            business_id=business_id,
            mutex=self._lock,
        )
        self._catalog: List[ProductSnapshot] = []
        self.last_used = 0.0

    @property
    def catalog(self) -> List[ProductSnapshot]:
        return list(self._catalog)

    def reload_catalog(self) -> List[ProductSnapshot]:
        products = self._stores.products.list_active_products(self.business_id)
        self._catalog = products
        return list(products)

    def _snapshot(self, product_id: str) -> Optional[ProductSnapshot]:
        for p in self._catalog:
            if p.id == product_id:
                return p
        return None

    def product(self, product_id: str) -> ProductSnapshot:
        found = self._snapshot(product_id)
        if found is None:
            raise UnknownProduct("Producto no encontrado")
        return found

    # Mutations du panier (refusées pendant un enregistrement)

    def add(self, product_id: str) -> CartLine:
        with self._lock:
            self.checkout.ensure_cart_editable()
            return self.cart.add(self.product(product_id))

    def scan(self, query: str) -> CartLine:
        with self._lock:
            self.checkout.ensure_cart_editable()
            match = find_product(self._catalog, query)
            if match is None:
                raise UnknownProduct("No encontré ese producto.")
            return self.cart.add(match)

    def increment(self, product_id: str) -> CartLine:
        with self._lock:
            self.checkout.ensure_cart_editable()
            # plafond = stock du dernier catalogue chargé
            return self.cart.increment(product_id, self._snapshot(product_id))

    def decrement(self, product_id: str) -> Optional[CartLine]:
        with self._lock:
            self.checkout.ensure_cart_editable()
            return self.cart.decrement(product_id)

    def remove(self, product_id: str) -> None:
        with self._lock:
            self.checkout.ensure_cart_editable()
            self.cart.remove(product_id)

    def clear(self) -> None:
        with self._lock:
            self.checkout.ensure_cart_editable()
            self.cart.clear()

    def choose_ticket(self, with_ticket: bool, created_by: Optional[str]) -> CheckoutOutcome:
        outcome = self.checkout.choose_ticket(with_ticket, created_by)
        try:
            self.reload_catalog()
        except PersistenceError:
            # La vente est enregistrée; le catalogue sera rechargé à la prochaine demande
            logger.warning("Catalogue non rechargé après la vente %s", outcome.result.sale.id)
        return outcome


class TerminalRegistry:
    def __init__(
        self,
        stores: Stores,
        idle_ttl: float = TERMINAL_IDLE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._stores = stores
        self._idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: Dict[Tuple[str, str], TerminalSession] = {}
        self._lock = threading.Lock()

    def get(self, business_id: str, terminal_id: Optional[str] = None) -> TerminalSession:
        """
        Session existante ou nouvelle.
        - Le catalogue d'une nouvelle session est chargé hors du verrou du registre:
          une lecture lente ne bloque pas les autres terminaux.
        """
        key = (str(business_id), (terminal_id or "").strip() or DEFAULT_TERMINAL_ID)
        now = self._clock()
        with self._lock:
            self._evict_idle(now)
            session = self._sessions.get(key)
            if session is not None:
                session.last_used = now
                return session

        fresh = TerminalSession(key[0], key[1], self._stores)
        fresh.reload_catalog()

        with self._lock:
            # Deux premières requêtes concurrentes: la première enregistrée gagne
            session = self._sessions.setdefault(key, fresh)
            session.last_used = now
            return session

    def _evict_idle(self, now: float) -> None:
        idle = [
            key
            for key, session in self._sessions.items()
            if now - session.last_used > self._idle_ttl and not session.checkout.is_committing
        ]
        for key in idle:
            del self._sessions[key]
        if idle:
            logger.info("%d terminal(aux) inactif(s) oublié(s)", len(idle))

    def __len__(self) -> int:
        return len(self._sessions)
