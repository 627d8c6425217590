"""
Clients Supabase partagés (créés à la première utilisation).

- client anon: Supabase Auth (validation des jetons d'accès des caissiers)
- client service-role: tables métier; chaque requête des repositories filtre par business_id
Une configuration absente est une PersistenceError: le moteur la traite comme un store indisponible.
"""
from typing import Dict
import logging
import threading
from supabase import Client, create_client
from caja.config import SUPABASE_ANON, SUPABASE_SERVICE_KEY, SUPABASE_URL
from caja.errors import PersistenceError

logger = logging.getLogger(__name__)

_clients: Dict[str, Client] = {}
_lock = threading.Lock()


def _client(role: str, key: str) -> Client:
    with _lock:
        client = _clients.get(role)
        if client is not None:
            return client
        if not SUPABASE_URL or not key:
            logger.error("Supabase non configuré (rôle %s): SUPABASE_URL ou clé manquante", role)
            raise PersistenceError("Servicio no disponible")
        client = create_client(SUPABASE_URL, key)
        _clients[role] = client
        logger.info("Client Supabase initialisé (rôle %s)", role)
        return client


def get_supabase() -> Client:
    return _client("anon", SUPABASE_ANON)


def get_service_supabase() -> Client:
    return _client("service", SUPABASE_SERVICE_KEY)


def reset_clients() -> None:
    """Oublie les clients créés (changement de configuration, tests)."""
    with _lock:
        _clients.clear()
