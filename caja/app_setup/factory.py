"""
Factory d'application pour les entrypoints (ex: caja.asgi) et les tests.
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from typing import Optional
from fastapi import FastAPI
from caja.checkout.terminals import TerminalRegistry
from caja.infra.stores import Stores, build_stores
from .lifespan import lifespan
from .middlewares import (
    register_basic_middlewares,
    register_security_middleware,
    register_no_cache_middleware,
    register_force_https_middleware,
)
from .exception_handlers import register_exception_handlers
from .routers import register_routers

def create_app(stores: Optional[Stores] = None) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - stores (Supabase ou local) et registre des terminaux sur app.state
      - middlewares de base, sécurité, no-cache
      - gestionnaires d'exceptions et routers (API, web, health)
      - middleware HTTPS en dernier pour qu'il s'exécute en premier
    Args:
      stores: bundle injecté (tests, store local); sinon build_stores() selon STORE_BACKEND.
    """
    app = FastAPI(title="Caja POS", lifespan=lifespan)
    app.state.stores = stores or build_stores()
    app.state.terminals = TerminalRegistry(app.state.stores)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    register_force_https_middleware(app)
    return app
