from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root():
    return {"ok": True}


@router.get("/redis")
async def health_redis(request: Request):
    """Ping du stockage durable (snapshots, marqueurs) + état du rate limiting."""
    try:
        ok = bool(await request.app.state.redis.ping())
        error = None
    except Exception as e:
        ok = False
        error = str(e)
    payload = {"ok": ok, "rate_limit": rate_limit_health_info(request)}
    if error:
        payload["error"] = error
    return JSONResponse(payload, status_code=200 if ok else 503)
