"""Tests for the SQL whale-duration repository."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from holder_audit.analytics.types import WhaleRecord
from holder_audit.storage.whales import SqlWhaleRepository

MINT_A = "So11111111111111111111111111111111111111112"
MINT_B = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
MINT_C = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
T0 = datetime(2024, 6, 1, 0, 0)


def _record(address: str, token: str = MINT_A, **kwargs) -> WhaleRecord:
    defaults = dict(
        address=address,
        token_address=token,
        first_seen=T0,
        last_seen=T0,
        consecutive_days=1,
        balance=Decimal("300000"),
        usd_value=Decimal("300000"),
        snapshot_id=1,
    )
    defaults.update(kwargs)
    return WhaleRecord(**defaults)


@pytest.mark.asyncio
async def test_upsert_inserts_then_updates(session_factory):
    repo = SqlWhaleRepository(session_factory)
    await repo.upsert(_record("w1"))
    await repo.upsert(
        _record("w1", last_seen=T0 + timedelta(days=1), consecutive_days=2, snapshot_id=2)
    )

    [record] = await repo.query_by_token(MINT_A)
    assert record.consecutive_days == 2
    assert record.snapshot_id == 2
    assert record.first_seen == T0


@pytest.mark.asyncio
async def test_query_by_snapshot_sorted_by_usd(session_factory):
    repo = SqlWhaleRepository(session_factory)
    await repo.upsert(_record("small", usd_value=Decimal("260000")))
    await repo.upsert(_record("big", usd_value=Decimal("900000")))
    await repo.upsert(_record("old", snapshot_id=0))

    rows = await repo.query_by_snapshot(MINT_A, 1)
    assert [r.address for r in rows] == ["big", "small"]


@pytest.mark.asyncio
async def test_query_retention(session_factory):
    repo = SqlWhaleRepository(session_factory)
    as_of = T0 + timedelta(days=60)
    await repo.upsert(_record("fresh", last_seen=as_of - timedelta(days=2)))
    await repo.upsert(_record("month", last_seen=as_of - timedelta(days=20)))
    await repo.upsert(_record("stale", last_seen=as_of - timedelta(days=50)))

    counts = await repo.query_retention(MINT_A, 1, as_of, (7, 30, 90))

    assert counts.total == 3
    assert counts.retained == {7: 1, 30: 2, 90: 3}


@pytest.mark.asyncio
async def test_cross_token_whales(session_factory):
    repo = SqlWhaleRepository(session_factory)
    for token in (MINT_A, MINT_B, MINT_C):
        await repo.upsert(_record("multi", token=token))
    await repo.upsert(_record("pair", token=MINT_A))
    await repo.upsert(_record("pair", token=MINT_B))
    await repo.upsert(_record("gone", token=MINT_A, last_seen=T0 - timedelta(days=40)))

    result = await repo.cross_token_whales(since=T0 - timedelta(days=30), min_tokens=3)

    assert result == {"multi": 3}
