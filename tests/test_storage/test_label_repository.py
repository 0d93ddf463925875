"""Tests for the SQL wallet-label repository."""

from datetime import datetime, timedelta

import pytest

from holder_audit.storage.labels import SqlLabelRepository

NOW = datetime(2024, 7, 1, 12, 0)


@pytest.mark.asyncio
async def test_fetch_skips_expired(session_factory):
    repo = SqlLabelRepository(session_factory, clock=lambda: NOW)
    await repo.upsert_label("cex", "CEX", "Binance", expires_at=None)
    await repo.upsert_label("top", "TopHolder", "Top 1 $Bonk", expires_at=NOW + timedelta(days=1))
    await repo.upsert_label("old", "Whale", "Whale in $Bonk", expires_at=NOW - timedelta(days=1))

    labels = await repo.fetch_labels(["cex", "top", "old", "unknown"])

    assert set(labels) == {"cex", "top"}
    assert labels["cex"].type == "CEX"
    assert labels["top"].label == "Top 1 $Bonk"


@pytest.mark.asyncio
async def test_upsert_overwrites(session_factory):
    repo = SqlLabelRepository(session_factory, clock=lambda: NOW)
    await repo.upsert_label("w", "TopHolder", "Top 3 $X", expires_at=None)
    await repo.upsert_label("w", "Whale", "Whale in $X", expires_at=None)

    labels = await repo.fetch_labels(["w"])
    assert labels["w"].type == "Whale"


@pytest.mark.asyncio
async def test_fetch_many_addresses_in_chunks(session_factory):
    repo = SqlLabelRepository(session_factory, clock=lambda: NOW)
    addresses = [f"addr{i}" for i in range(1200)]
    await repo.upsert_label("addr1100", "CEX", "OKX", expires_at=None)

    labels = await repo.fetch_labels(addresses)
    assert list(labels) == ["addr1100"]


@pytest.mark.asyncio
async def test_purge_expired(session_factory):
    repo = SqlLabelRepository(session_factory, clock=lambda: NOW)
    await repo.upsert_label("keep", "CEX", "Binance", expires_at=None)
    await repo.upsert_label("later", "Whale", "w", expires_at=NOW + timedelta(hours=1))
    await repo.upsert_label("gone", "Whale", "w", expires_at=NOW - timedelta(hours=1))

    assert await repo.purge_expired(NOW) == 1
    assert await repo.purge_expired(NOW) == 0
    assert set(await repo.fetch_labels(["keep", "later", "gone"])) == {"keep", "later"}
