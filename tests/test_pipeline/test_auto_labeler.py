"""Tests for post-snapshot auto labeling."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from holder_audit.analytics.tiers import Tier
from holder_audit.analytics.types import TopHolderRow, WhaleRecord
from holder_audit.pipeline.auto_labeler import AutoLabeler, short_mint
from holder_audit.storage.memory import InMemoryLabelRepository, InMemoryWhaleRepository

MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
NOW = datetime(2024, 10, 1, 8, 0)


def _row(rank: int, address: str, tier: Tier | None) -> TopHolderRow:
    return TopHolderRow(rank, address, 1, 0, Decimal("1"), Decimal("1"), tier)


def test_short_mint():
    assert short_mint(MINT) == "DezX...B263"


@pytest.mark.asyncio
async def test_top_holder_and_whale_labels():
    labels = InMemoryLabelRepository(lambda: NOW)
    labeler = AutoLabeler(labels, clock=lambda: NOW)
    rows = [
        _row(1, "whale", Tier.WHALE),
        _row(2, "shark", Tier.SHARK),
        _row(3, "fish", Tier.FISH),
        _row(11, "deep", Tier.FISH),
    ]

    written = await labeler.label_snapshot(MINT, rows)

    assert written == 3
    stored = await labels.fetch_labels(["whale", "shark", "fish", "deep"])
    assert stored["whale"].label == "Whale in $DezX...B263"
    assert stored["shark"].type == "Shark"
    assert stored["fish"].label == "Top 3 $DezX...B263"
    assert "deep" not in stored


@pytest.mark.asyncio
async def test_labels_expire_after_ttl():
    labels = InMemoryLabelRepository(lambda: NOW + timedelta(days=31))
    labeler = AutoLabeler(labels, ttl_days=30, clock=lambda: NOW)

    await labeler.label_snapshot(MINT, [_row(1, "fish", Tier.FISH)])

    assert await labels.fetch_labels(["fish"]) == {}
    assert await labeler.purge_expired() == 0
    assert await labels.purge_expired(NOW + timedelta(days=31)) == 1


@pytest.mark.asyncio
async def test_protected_labels_are_kept():
    labels = InMemoryLabelRepository(lambda: NOW)
    await labels.upsert_label("pool", "LP", "Raydium Pool", expires_at=None)
    labeler = AutoLabeler(labels, clock=lambda: NOW)

    written = await labeler.label_snapshot(MINT, [_row(1, "pool", Tier.WHALE)])

    assert written == 0
    assert (await labels.fetch_labels(["pool"]))["pool"].label == "Raydium Pool"


@pytest.mark.asyncio
async def test_cross_token_whales_labeled():
    labels = InMemoryLabelRepository(lambda: NOW)
    whales = InMemoryWhaleRepository()
    for token in ("t1", "t2", "t3"):
        await whales.upsert(
            WhaleRecord("multi", token, NOW, NOW, 1, Decimal("1"), Decimal("300000"), 1)
        )
    labeler = AutoLabeler(labels, whales, clock=lambda: NOW)

    await labeler.label_snapshot(MINT, [])

    stored = await labels.fetch_labels(["multi"])
    assert stored["multi"].type == "CrossTokenWhale"
    assert stored["multi"].label == "Cross-Token Whale (3 tokens)"


@pytest.mark.asyncio
async def test_nothing_to_label():
    labeler = AutoLabeler(InMemoryLabelRepository(lambda: NOW), clock=lambda: NOW)
    assert await labeler.label_snapshot(MINT, []) == 0
