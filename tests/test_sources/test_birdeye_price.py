"""Tests for the Birdeye price client."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from holder_audit.analytics.errors import FetchError
from holder_audit.sources.birdeye import client as birdeye_module
from holder_audit.sources.birdeye.client import BirdeyeClient
from holder_audit.sources.birdeye.models import BirdeyePrice

MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def _resp(status: int, body: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body or {}
    return resp


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(birdeye_module.asyncio, "sleep", AsyncMock())
    c = BirdeyeClient("test-key", max_rps=0)
    c._client = AsyncMock()
    return c


def test_birdeye_price_model():
    price = BirdeyePrice.model_validate({"value": "0.9998", "updateUnixTime": 1700000000, "extra": 1})
    assert price.value == Decimal("0.9998")
    assert price.updateUnixTime == 1700000000


@pytest.mark.asyncio
async def test_get_price(client):
    client._client.get = AsyncMock(
        return_value=_resp(200, {"success": True, "data": {"value": "1.0001", "updateUnixTime": 1}})
    )
    price = await client.get_price(MINT)
    assert price.value == Decimal("1.0001")
    assert client._client.get.call_args.args[0] == "/defi/price"


@pytest.mark.asyncio
async def test_api_error_raises(client):
    client._client.get = AsyncMock(return_value=_resp(200, {"success": False, "message": "bad"}))
    with pytest.raises(FetchError):
        await client.get_price(MINT)


@pytest.mark.asyncio
async def test_invalid_key_is_unknown_price(client):
    client._client.get = AsyncMock(return_value=_resp(401))
    assert await client.fetch_usd_price(MINT) is None


@pytest.mark.asyncio
async def test_missing_value_is_unknown_price(client):
    client._client.get = AsyncMock(return_value=_resp(200, {"success": True, "data": {}}))
    assert await client.fetch_usd_price(MINT) is None
