"""Deltas of the current audit against the most recent prior snapshot."""

from dataclasses import dataclass
from decimal import Decimal

from holder_audit.analytics.aggregation import HolderAggregates, percent_of_supply
from holder_audit.analytics.tiers import Tier
from holder_audit.analytics.types import Snapshot


@dataclass(frozen=True)
class SnapshotDeltas:
    holders: int
    shrimp: int
    fish: int
    dolphin: int
    shark: int
    whale: int
    top10_percent: Decimal

    def as_dict(self) -> dict[str, int | float]:
        return {
            "holders": self.holders,
            "shrimp": self.shrimp,
            "fish": self.fish,
            "dolphin": self.dolphin,
            "shark": self.shark,
            "whale": self.whale,
            "top10_percent": float(self.top10_percent),
        }


def compute_deltas(
    current: HolderAggregates,
    previous: Snapshot | None,
    total_supply_ui: Decimal | None,
) -> SnapshotDeltas | None:
    """current - previous for holder/tier counts and top-10 concentration.

    None without a previous snapshot, so "no history" differs from "no change".
    The previous top-10 balance is divided by the *current* supply; supply
    changes between snapshots are not corrected for.
    """
    if previous is None:
        return None

    def _tier_delta(tier: Tier) -> int:
        return current.tier_counts.get(tier, 0) - previous.tier_counts.get(tier, 0)

    prev_top10_pct = percent_of_supply(previous.top10_balance, total_supply_ui)
    return SnapshotDeltas(
        holders=current.total_holders - previous.total_holders,
        shrimp=_tier_delta(Tier.SHRIMP),
        fish=_tier_delta(Tier.FISH),
        dolphin=_tier_delta(Tier.DOLPHIN),
        shark=_tier_delta(Tier.SHARK),
        whale=_tier_delta(Tier.WHALE),
        top10_percent=current.top10_percent - prev_top10_pct,
    )
