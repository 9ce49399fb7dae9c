"""
Rate limiting optionnel (fastapi-limiter sur Redis).
- Clé: hash du cookie de session si présent, sinon IP du client; toujours suffixée par le chemin.
- LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (app.state) au lieu de Redis.
- app.state.rate_limit_enabled=False (lifespan): dépendance sans effet.
"""
import hashlib
import logging
import os
import time
from typing import Any, Dict
from urllib.parse import urlparse

from fastapi import HTTPException, Request, Response

from backend import config
from backend.utils.security import COOKIE_NAME

logger = logging.getLogger(__name__)


def rate_limit_key(request: Request) -> str:
    path = request.url.path
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return f"user:{hashlib.sha256(token.encode('utf-8')).hexdigest()[:16]}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"


def _local_hit(request: Request, times: int, seconds: int) -> None:
    now = time.time()
    key = rate_limit_key(request)
    store = getattr(request.app.state, "_rl_store", {})
    hits = [t for t in store.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        raise HTTPException(status_code=429, detail="Too Many Requests")
    hits.append(now)
    store[key] = hits
    request.app.state._rl_store = store


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _local_hit(request, times, seconds)
            return
        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return rate_limit_key(req)

        try:
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception:
            # Redis indisponible: pas de 429 en production
            logger.warning("rate limit skipped path=%s", request.url.path)
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    try:
        from fastapi_limiter import FastAPILimiter
        ready = getattr(FastAPILimiter, "redis", None) is not None
    except Exception:
        ready = False

    info: Dict[str, Any] = {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else None,
    }
    if ready and config.RATE_LIMIT_REDIS_URL:
        p = urlparse(config.RATE_LIMIT_REDIS_URL)
        info["redis"] = {"scheme": p.scheme, "host": p.hostname, "port": p.port}
    return info
