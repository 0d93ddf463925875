"""Tests for the shared cache Redis connection."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from holder_audit.db import redis as redis_module


@pytest.fixture(autouse=True)
def reset_client(monkeypatch):
    monkeypatch.setattr(redis_module, "_cache_client", None)


def _fake_redis(ping_error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.ping = AsyncMock(side_effect=ping_error)
    client.aclose = AsyncMock()
    return client


@pytest.mark.asyncio
async def test_unreachable_redis_returns_none(monkeypatch):
    client = _fake_redis(RedisConnectionError("refused"))
    monkeypatch.setattr(redis_module.Redis, "from_url", MagicMock(return_value=client))

    assert await redis_module.connect_cache_redis("redis://nowhere:6379/0") is None
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_client_is_shared_until_closed(monkeypatch):
    client = _fake_redis()
    from_url = MagicMock(return_value=client)
    monkeypatch.setattr(redis_module.Redis, "from_url", from_url)

    first = await redis_module.connect_cache_redis()
    second = await redis_module.connect_cache_redis()
    assert first is second is client
    assert from_url.call_count == 1

    await redis_module.close_cache_redis()
    client.aclose.assert_awaited_once()
    assert redis_module._cache_client is None
