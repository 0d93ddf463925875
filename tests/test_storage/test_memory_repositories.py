"""Tests for the in-process repositories."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from holder_audit.analytics.errors import DedupRace
from holder_audit.analytics.tiers import empty_tier_map
from holder_audit.analytics.types import Snapshot, WhaleRecord
from holder_audit.storage.memory import (
    InMemoryLabelRepository,
    InMemorySnapshotRepository,
    InMemoryWhaleRepository,
)

MINT = "So11111111111111111111111111111111111111112"
T0 = datetime(2024, 8, 1, 9, 0)


def _snapshot(bucket: int, captured_at: datetime = T0) -> Snapshot:
    return Snapshot(
        token_address=MINT,
        captured_at=captured_at,
        bucket_key=bucket,
        price_usd=None,
        total_holders=0,
        tier_counts=empty_tier_map(0),
        top_n_balances={},
        total_supply_ui=None,
        tier_supply_ui=empty_tier_map(Decimal("0")),
    )


@pytest.mark.asyncio
async def test_snapshot_bucket_uniqueness():
    repo = InMemorySnapshotRepository()
    first = await repo.insert(_snapshot(1))

    with pytest.raises(DedupRace) as exc:
        await repo.insert(_snapshot(1))

    assert exc.value.winner_id == first
    assert len(repo) == 1


@pytest.mark.asyncio
async def test_snapshot_metadata_update_keeps_aggregates():
    repo = InMemorySnapshotRepository()
    snapshot_id = await repo.insert(_snapshot(1))
    await repo.update_metadata(snapshot_id, name="Wrapped SOL", symbol="SOL")

    stored = await repo.get(snapshot_id)
    assert stored.token_symbol == "SOL"
    assert stored.bucket_key == 1


@pytest.mark.asyncio
async def test_whale_cross_token_counts():
    repo = InMemoryWhaleRepository()
    for token in ("a", "b", "c"):
        await repo.upsert(
            WhaleRecord("w", token, T0, T0, 1, Decimal("1"), Decimal("300000"), 1)
        )

    assert await repo.cross_token_whales(since=T0 - timedelta(days=1), min_tokens=3) == {"w": 3}
    assert await repo.cross_token_whales(since=T0 + timedelta(days=1), min_tokens=1) == {}


@pytest.mark.asyncio
async def test_label_expiry_follows_clock():
    now = T0

    def clock() -> datetime:
        return now

    repo = InMemoryLabelRepository(clock)
    await repo.upsert_label("w", "Whale", "Whale in $SOL", expires_at=T0 + timedelta(days=30))
    assert "w" in await repo.fetch_labels(["w"])

    now = T0 + timedelta(days=31)
    assert await repo.fetch_labels(["w"]) == {}
    assert await repo.purge_expired(now) == 1
    assert len(repo) == 0
