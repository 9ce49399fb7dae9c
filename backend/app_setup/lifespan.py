"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Précharge les taux de change (jamais bloquant: fallback statique au pire).
Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive le rate limiting (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
  - PRELOAD_EXCHANGE_RATES=0: ne pas précharger les taux au démarrage
"""
import os
import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter
from starlette.concurrency import run_in_threadpool

from backend import config
from backend.currency import rates as currency_rates

logger = logging.getLogger("uvicorn.error")


async def _init_rate_limiter(app: FastAPI) -> None:
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            from fakeredis.aioredis import FakeRedis  # tests only
            r = FakeRedis(decode_responses=True)
        else:
            r = aioredis.from_url(config.RATE_LIMIT_REDIS_URL, encoding="utf-8", decode_responses=True)
        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        app.state.rate_limit_enabled = os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1"
        if app.state.rate_limit_enabled:
            logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
        else:
            logger.warning("Rate limiting disabled due to init error: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await _init_rate_limiter(app)
    if os.getenv("PRELOAD_EXCHANGE_RATES", "1") == "1":
        snapshot = await run_in_threadpool(currency_rates.get_exchange_rates)
        logger.info(
            "Exchange rates loaded base=%s source=%s currencies=%s",
            snapshot.base, currency_rates.get_rate_service().last_source, len(snapshot.rates),
        )
    yield
