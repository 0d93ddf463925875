"""TTL caches in front of the price oracle and token metadata lookups.

A miss ("price unknown") is cached like a hit, so an unpriced token costs
one provider round-trip per TTL. Backends: in-process dict or Redis.
"""

import json
import time
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Protocol

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from holder_audit.interfaces import PriceOracle
from holder_audit.sources.dexscreener.models import TokenMetadata

PRICE_KEY = "holder_audit:price:{mint}"
META_KEY = "holder_audit:meta:{mint}"


class CacheStore(Protocol):
    async def get(self, key: str) -> str | None:
        """Stored JSON text, None on miss or expiry."""
        ...

    async def set(self, key: str, value: str, ttl_sec: int) -> None: ...


class InMemoryCacheStore:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_sec: int) -> None:
        self._entries[key] = (self._clock() + ttl_sec, value)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore:
    """Shares cached prices across processes. Redis errors degrade to misses."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def get(self, key: str) -> str | None:
        try:
            value = await self._redis.get(key)
        except RedisError as e:
            logger.debug(f"[CACHE] Redis get failed for {key}: {e}")
            return None
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else value

    async def set(self, key: str, value: str, ttl_sec: int) -> None:
        try:
            await self._redis.set(key, value, ex=ttl_sec)
        except RedisError as e:
            logger.debug(f"[CACHE] Redis set failed for {key}: {e}")


class PriceCache:
    """PriceOracle wrapper with a per-mint TTL (default 60s)."""

    def __init__(self, oracle: PriceOracle, store: CacheStore, ttl_sec: int = 60) -> None:
        self._oracle = oracle
        self._store = store
        self._ttl = ttl_sec

    async def fetch_usd_price(self, token_address: str) -> Decimal | None:
        key = PRICE_KEY.format(mint=token_address)
        cached = await self._store.get(key)
        if cached is not None:
            value = json.loads(cached)
            return Decimal(value) if value is not None else None

        price = await self._oracle.fetch_usd_price(token_address)
        await self._store.set(key, json.dumps(str(price) if price is not None else None), self._ttl)
        return price


class MetadataCache:
    """Token name/symbol lookups cached for an hour."""

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[TokenMetadata]],
        store: CacheStore,
        ttl_sec: int = 3600,
    ) -> None:
        self._fetch = fetch
        self._store = store
        self._ttl = ttl_sec

    async def get(self, token_address: str) -> TokenMetadata:
        key = META_KEY.format(mint=token_address)
        cached = await self._store.get(key)
        if cached is not None:
            return TokenMetadata.model_validate_json(cached)

        metadata = await self._fetch(token_address)
        if metadata.name or metadata.symbol:
            await self._store.set(key, metadata.model_dump_json(), self._ttl)
        return metadata
