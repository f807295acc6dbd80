from typing import Any, Dict
from fastapi import Request, Response, HTTPException
import logging
import os
import time
import hashlib

from storefront.utils.security import GUEST_SESSION_KEY, IDENTITY_SESSION_KEY

logger = logging.getLogger(__name__)


def _client_key(req: Request) -> str:
    # Priorité: compte puis invité de la session (hashés), sinon IP
    path = req.url.path
    session = req.scope.get("session") or {}
    owner = session.get(IDENTITY_SESSION_KEY) or session.get(GUEST_SESSION_KEY)
    if owner:
        h = hashlib.sha256(str(owner).encode("utf-8")).hexdigest()[:16]
        return f"owner:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _client_key(request)
            store = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        # Respecter le flag global
        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req)
        try:
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception as e:
            # fastapi-limiter indisponible (ex: SCRIPT non supporté): pas de 429 en prod
            logger.warning("rate_limit unavailable path=%s error=%s", request.url.path, e)
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    from fastapi_limiter import FastAPILimiter
    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": "redis" if limiter_ready else None,
        "local_fallback": os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1",
    }
