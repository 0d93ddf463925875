"""USD tier classification: Shrimp ... Whale."""

from decimal import Decimal
from enum import Enum
from typing import Any


class Tier(str, Enum):
    SHRIMP = "shrimp"
    FISH = "fish"
    DOLPHIN = "dolphin"
    SHARK = "shark"
    WHALE = "whale"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def floor_usd(self) -> Decimal:
        return TIER_FLOORS[self]


# Inclusive floors, checked highest first
TIER_FLOORS: dict[Tier, Decimal] = {
    Tier.WHALE: Decimal("250000"),
    Tier.SHARK: Decimal("100000"),
    Tier.DOLPHIN: Decimal("25000"),
    Tier.FISH: Decimal("1000"),
    Tier.SHRIMP: Decimal("100"),
}

TIERS_ASCENDING: tuple[Tier, ...] = (
    Tier.SHRIMP,
    Tier.FISH,
    Tier.DOLPHIN,
    Tier.SHARK,
    Tier.WHALE,
)

_RANKS = {tier: i for i, tier in enumerate(TIERS_ASCENDING, 1)}

ELIGIBILITY_FLOOR_USD = TIER_FLOORS[Tier.SHRIMP]
WHALE_THRESHOLD_USD = TIER_FLOORS[Tier.WHALE]


def classify_tier(usd_value: Decimal | float | None) -> Tier | None:
    """Map a USD value to its tier. None or below $100 is untiered."""
    if usd_value is None:
        return None
    for tier, floor in TIER_FLOORS.items():
        if usd_value >= floor:
            return tier
    return None


def empty_tier_map(default: Any = 0) -> dict[Tier, Any]:
    """Fresh {tier: default} dict in ascending tier order."""
    return {tier: default for tier in TIERS_ASCENDING}
