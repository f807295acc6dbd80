from typing import Optional
import redis.asyncio as redis

from storefront.config import REDIS_URL

_redis: Optional[redis.Redis] = None

def get_redis() -> redis.Redis:
    global _redis
    if _redis is None:
        _redis = redis.from_url(REDIS_URL, encoding="utf-8", decode_responses=True)
    return _redis

def set_redis(client: Optional[redis.Redis]) -> None:
    """
    Injecte un client (ex: fakeredis en tests, instance partagée du lifespan).
    """
    global _redis
    _redis = client
