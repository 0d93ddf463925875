"""Tests for the DexScreener pair client and its helpers."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from holder_audit.sources.dexscreener import client as dex_module
from holder_audit.sources.dexscreener.client import (
    DexScreenerClient,
    best_liquidity,
    best_price,
    pair_addresses,
    token_metadata,
)
from holder_audit.sources.dexscreener.models import DexScreenerPair

MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
SOL = "So11111111111111111111111111111111111111112"


def _pair(address: str, price: str | None, liquidity: float | str | None, base: str = MINT) -> dict:
    return {
        "chainId": "solana",
        "dexId": "raydium",
        "pairAddress": address,
        "baseToken": {"address": base, "name": "Bonk", "symbol": "BONK"},
        "quoteToken": {"address": SOL, "name": "Wrapped SOL", "symbol": "SOL"},
        "priceUsd": price,
        "liquidity": {"usd": liquidity} if liquidity is not None else None,
    }


def _pairs(*raw: dict) -> list[DexScreenerPair]:
    return [DexScreenerPair.model_validate(p) for p in raw]


def test_best_price_skips_missing_and_bad_values():
    pairs = _pairs(_pair("p1", None, 10), _pair("p2", "abc", 10), _pair("p3", "0.000021", 10))
    assert best_price(pairs) == Decimal("0.000021")
    assert best_price([]) is None


def test_best_liquidity_uses_deepest_pair():
    pairs = _pairs(_pair("p1", "1", 5000), _pair("p2", "1", 90000), _pair("p3", "1", None))
    assert best_liquidity(pairs) == Decimal("90000")
    assert best_liquidity(_pairs(_pair("p1", "1", None))) is None


def test_token_metadata_matches_quote_side():
    pairs = _pairs(_pair("p1", "1", 100, base="OtherMint"))
    meta = token_metadata(pairs, SOL)
    assert meta.symbol == "SOL"
    assert meta.name == "Wrapped SOL"


def test_token_metadata_empty():
    meta = token_metadata([], MINT)
    assert meta.name is None and meta.symbol is None


def test_pair_addresses_deduplicated():
    pairs = _pairs(_pair("p1", "1", 1), _pair("p1", "1", 1), _pair("p2", "1", 1))
    assert pair_addresses(pairs) == ["p1", "p2"]


class TestDexScreenerClient:
    @pytest.fixture
    def client(self, monkeypatch):
        monkeypatch.setattr(dex_module.asyncio, "sleep", AsyncMock())
        c = DexScreenerClient(max_rps=0)
        c._client = AsyncMock()
        return c

    @staticmethod
    def _ok(body) -> MagicMock:
        resp = MagicMock()
        resp.status_code = 200
        resp.json.return_value = body
        return resp

    @pytest.mark.asyncio
    async def test_price_and_liquidity(self, client) -> None:
        client._client.get = AsyncMock(
            return_value=self._ok({"pairs": [_pair("p1", "0.5", "1200.5")]})
        )
        assert await client.fetch_usd_price(MINT) == Decimal("0.5")
        assert await client.get_liquidity_usd(MINT) == Decimal("1200.5")
        client._client.get.assert_called_with(f"/latest/dex/tokens/{MINT}")

    @pytest.mark.asyncio
    async def test_no_pairs(self, client) -> None:
        client._client.get = AsyncMock(return_value=self._ok({"pairs": None}))
        assert await client.fetch_usd_price(MINT) is None
        assert await client.get_pair_addresses(MINT) == []

    @pytest.mark.asyncio
    async def test_network_failure_is_empty(self, client) -> None:
        """Enrichment lookups never raise."""
        client._client.get = AsyncMock(side_effect=httpx.ConnectError("down"))
        assert await client.get_liquidity_usd(MINT) is None
        meta = await client.get_token_metadata(MINT)
        assert meta.symbol is None
        assert client._client.get.call_count == 6

    @pytest.mark.asyncio
    async def test_rate_limit_then_success(self, client) -> None:
        limited = MagicMock()
        limited.status_code = 429
        limited.headers = {}
        client._client.get = AsyncMock(
            side_effect=[limited, self._ok({"pairs": [_pair("p9", "2", 1)]})]
        )
        assert await client.get_pair_addresses(MINT) == ["p9"]
