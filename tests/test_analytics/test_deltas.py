"""Tests for deltas against the previous snapshot."""

from datetime import datetime
from decimal import Decimal

from holder_audit.analytics.aggregation import HolderAggregates
from holder_audit.analytics.deltas import compute_deltas
from holder_audit.analytics.tiers import Tier, empty_tier_map
from holder_audit.analytics.types import Snapshot


def _aggregates(holders: int, whales: int, top10: str, supply: str) -> HolderAggregates:
    counts = empty_tier_map(0)
    counts[Tier.WHALE] = whales
    counts[Tier.SHRIMP] = holders - whales
    return HolderAggregates(
        total_holders=holders,
        eligible_holders=holders,
        price_usd=Decimal("1"),
        total_supply_ui=Decimal(supply),
        tier_counts=counts,
        top_n_balances={10: Decimal(top10)},
        top_n_percent={10: Decimal(top10) / Decimal(supply)},
    )


def _previous(holders: int, whales: int, top10: str) -> Snapshot:
    counts = empty_tier_map(0)
    counts[Tier.WHALE] = whales
    counts[Tier.SHRIMP] = holders - whales
    return Snapshot(
        token_address="mint",
        captured_at=datetime(2024, 1, 1),
        bucket_key=1,
        price_usd=Decimal("1"),
        total_holders=holders,
        tier_counts=counts,
        top_n_balances={10: Decimal(top10)},
        total_supply_ui=Decimal("1000"),
        tier_supply_ui=empty_tier_map(Decimal("0")),
    )


def test_no_previous_snapshot_means_no_deltas():
    current = _aggregates(10, 1, "500", "1000")
    assert compute_deltas(current, None, Decimal("1000")) is None


def test_counts_and_top10():
    current = _aggregates(12, 2, "600", "1000")
    deltas = compute_deltas(current, _previous(10, 1, "500"), Decimal("1000"))

    assert deltas is not None
    assert deltas.holders == 2
    assert deltas.whale == 1
    assert deltas.shrimp == 1
    assert deltas.fish == 0
    assert deltas.top10_percent == Decimal("0.1")


def test_unchanged_is_zero_not_none():
    current = _aggregates(10, 1, "500", "1000")
    deltas = compute_deltas(current, _previous(10, 1, "500"), Decimal("1000"))
    assert deltas is not None
    assert deltas.as_dict() == {
        "holders": 0,
        "shrimp": 0,
        "fish": 0,
        "dolphin": 0,
        "shark": 0,
        "whale": 0,
        "top10_percent": 0.0,
    }


def test_previous_top10_uses_current_supply():
    """Supply doubled: the previous top-10 balance is divided by the new supply."""
    current = _aggregates(10, 1, "500", "2000")
    deltas = compute_deltas(current, _previous(10, 1, "500"), Decimal("2000"))
    assert deltas is not None
    assert deltas.top10_percent == Decimal("0")
