"""
Lifespan FastAPI du service de caisse.

Démarrage:
- journalise le backend de store retenu (supabase ou local dégradé)
- initialise fastapi-limiter sur Redis (RATE_LIMIT_REDIS_URL) ou fakeredis
Arrêt:
- ferme la connexion du limiter et journalise le nombre de terminaux ouverts

Variables d'environnement:
- DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: aucun rate limiting (tests)
- USE_FAKE_REDIS_FOR_TESTS=1: fakeredis en mémoire
- LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre en mémoire si Redis est injoignable
"""
import logging
import os
from contextlib import asynccontextmanager
import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter
from caja.config import RATE_LIMIT_REDIS_URL

logger = logging.getLogger("uvicorn.error")


def _redis_connection():
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        from fakeredis.aioredis import FakeRedis  # dépendance de test
        return FakeRedis(decode_responses=True)
    return aioredis.from_url(RATE_LIMIT_REDIS_URL, encoding="utf-8", decode_responses=True)


async def init_rate_limiter(app: FastAPI) -> None:
    """Positionne app.state.rate_limit_enabled; n'empêche jamais le démarrage."""
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting désactivé (DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS)")
        return
    try:
        await FastAPILimiter.init(_redis_connection())
    except Exception as e:
        fallback = os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1"
        app.state.rate_limit_enabled = fallback
        logger.warning(
            "Redis indisponible pour le rate limiting (%s): %s",
            "fenêtre locale" if fallback else "désactivé",
            e,
        )
        return
    app.state.rate_limit_enabled = True
    logger.info("Rate limiting actif (Redis)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    stores = app.state.stores
    logger.info("Caja: store %s", stores.backend)
    await init_rate_limiter(app)

    yield

    if getattr(FastAPILimiter, "redis", None) is not None:
        await FastAPILimiter.close()
    logger.info("Caja arrêtée (%d terminal(aux) ouvert(s))", len(app.state.terminals))
