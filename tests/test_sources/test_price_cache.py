"""Tests for the price and metadata TTL caches."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from holder_audit.sources.dexscreener.models import TokenMetadata
from holder_audit.sources.price_cache import (
    InMemoryCacheStore,
    MetadataCache,
    PriceCache,
    RedisCacheStore,
)

MINT = "So11111111111111111111111111111111111111112"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_price_cached_within_ttl():
    clock = FakeClock()
    oracle = AsyncMock()
    oracle.fetch_usd_price = AsyncMock(return_value=Decimal("0.000123"))
    cache = PriceCache(oracle, InMemoryCacheStore(clock), ttl_sec=60)

    assert await cache.fetch_usd_price(MINT) == Decimal("0.000123")
    clock.now += 59
    assert await cache.fetch_usd_price(MINT) == Decimal("0.000123")
    assert oracle.fetch_usd_price.await_count == 1

    clock.now += 2
    await cache.fetch_usd_price(MINT)
    assert oracle.fetch_usd_price.await_count == 2


@pytest.mark.asyncio
async def test_unknown_price_is_cached_too():
    oracle = AsyncMock()
    oracle.fetch_usd_price = AsyncMock(return_value=None)
    cache = PriceCache(oracle, InMemoryCacheStore(FakeClock()))

    assert await cache.fetch_usd_price(MINT) is None
    assert await cache.fetch_usd_price(MINT) is None
    assert oracle.fetch_usd_price.await_count == 1


@pytest.mark.asyncio
async def test_in_memory_store_expiry():
    clock = FakeClock()
    store = InMemoryCacheStore(clock)
    await store.set("k", "v", 10)
    assert await store.get("k") == "v"
    clock.now += 10
    assert await store.get("k") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_redis_store_errors_degrade_to_miss():
    redis = AsyncMock()
    redis.get = AsyncMock(side_effect=RedisConnectionError("down"))
    redis.set = AsyncMock(side_effect=RedisConnectionError("down"))
    store = RedisCacheStore(redis)

    assert await store.get("k") is None
    await store.set("k", "v", 60)


@pytest.mark.asyncio
async def test_redis_store_decodes_bytes():
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=b'"1.5"')
    store = RedisCacheStore(redis)
    assert await store.get("k") == '"1.5"'

    await store.set("k", "v", 60)
    redis.set.assert_awaited_with("k", "v", ex=60)


@pytest.mark.asyncio
async def test_metadata_cache_skips_empty_results():
    fetch = AsyncMock(side_effect=[TokenMetadata(), TokenMetadata(name="Bonk", symbol="BONK")])
    cache = MetadataCache(fetch, InMemoryCacheStore(FakeClock()))

    assert (await cache.get(MINT)).symbol is None
    assert (await cache.get(MINT)).symbol == "BONK"
    assert (await cache.get(MINT)).name == "Bonk"
    assert fetch.await_count == 2
