"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Redis (stockage durable du pipeline) et PersistedCheckoutState exposés sur app.state.
- Client httpx partagé vers l'API amont, fermé à l'arrêt.
- FastAPILimiter (Redis) avec options de test (fakeredis).
- Variables d'environnement supportées:
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive le rate limiting (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from storefront.infra import store_api
from storefront.infra.redis_client import get_redis, set_redis
from storefront.state.store import PersistedCheckoutState


def _build_redis():
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        from fakeredis import FakeServer  # tests only
        from fakeredis.aioredis import FakeRedis
        client = FakeRedis(server=FakeServer(), decode_responses=True)
        set_redis(client)
        return client
    return get_redis()


async def _init_rate_limiter(app: FastAPI, client, logger: logging.Logger) -> None:
    """
    Configure le rate limiting et gère les fallbacks.
    En cas d'échec de Redis et sans fallback, le rate limiting est désactivé proprement.
    """
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        await FastAPILimiter.init(client)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
        else:
            app.state.rate_limit_enabled = False
            logger.warning("Rate limiting disabled due to init error: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    client = _build_redis()
    app.state.redis = client
    app.state.checkout_state = PersistedCheckoutState(client)
    store_api.get_client()
    logger.info("Store API: %s", store_api.STORE_API_URL)

    await _init_rate_limiter(app, client, logger)
    try:
        yield
    finally:
        await store_api.close_client()
        await client.aclose()
        set_redis(None)
