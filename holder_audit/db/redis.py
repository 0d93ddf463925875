from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from config.settings import settings

_cache_client: Redis | None = None


async def connect_cache_redis(url: str | None = None) -> Redis | None:
    """Shared Redis client for the price/metadata cache, or None if unreachable.

    A failed ping is logged once and the caller falls back to the in-process
    cache; audits never depend on Redis being up.
    """
    global _cache_client
    if _cache_client is not None:
        return _cache_client

    client = Redis.from_url(url or settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except RedisError as e:
        logger.warning(f"[CACHE] Redis unavailable ({e}), using in-process cache")
        await client.aclose()
        return None
    _cache_client = client
    return _cache_client


async def close_cache_redis() -> None:
    global _cache_client
    if _cache_client is not None:
        await _cache_client.aclose()
        _cache_client = None
