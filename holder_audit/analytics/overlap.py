"""Multi-token holder overlap: wallets holding qualifying balances in 2-3 tokens.

Every leg must independently hold >= $100; grouping, tiering and the
notable/health summaries work on the combined USD value.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from itertools import combinations

from loguru import logger

from holder_audit.analytics.aggregation import percent_of_supply
from holder_audit.analytics.errors import InvalidInputError
from holder_audit.analytics.tiers import (
    ELIGIBILITY_FLOOR_USD,
    TIERS_ASCENDING,
    WHALE_THRESHOLD_USD,
    Tier,
    classify_tier,
    empty_tier_map,
)
from holder_audit.analytics.types import HolderLabel, NormalizedHolder, OverlapEntry, TokenLeg

NOTABLE_LIMIT = 20
WHALE_HEAVY_RATIO = Decimal("0.1")
SHRIMP_GROWTH_RATIO = Decimal("0.6")
GROUP_KEYS = "abc"

HolderMap = Mapping[str, NormalizedHolder]


@dataclass
class NotableWallet:
    address: str
    label: str | None
    tier: Tier
    total_usd: Decimal
    usd_by_token: dict[str, Decimal]


@dataclass
class OverlapGroupSummary:
    tokens: list[str]
    wallet_count: int
    tier_counts: dict[Tier, int]
    percent_supply: dict[str, Decimal]
    notable_wallets: list[NotableWallet] = field(default_factory=list)
    whale_heavy: bool = False
    shrimp_growth: bool = False


def _leg_usd(holder: NormalizedHolder, price: Decimal | None) -> Decimal | None:
    if holder.usd_value is not None:
        return holder.usd_value
    if price is None:
        return None
    return holder.ui_amount * price


def _qualifies(usd: Decimal | None) -> bool:
    return usd is not None and usd >= ELIGIBILITY_FLOOR_USD


def multi_overlap(
    holder_maps: Sequence[HolderMap],
    mints: Sequence[str],
    prices: Mapping[str, Decimal | None],
) -> list[OverlapEntry]:
    """Wallets present in every map with each leg >= $100, largest combined USD first."""
    if not holder_maps:
        return []

    first, *rest = holder_maps
    entries: list[OverlapEntry] = []
    for address in first:
        if any(address not in m for m in rest):
            continue
        legs: dict[str, TokenLeg] = {}
        for mint, holders in zip(mints, holder_maps):
            holder = holders[address]
            usd = _leg_usd(holder, prices.get(mint))
            if not _qualifies(usd):
                break
            legs[mint] = TokenLeg(ui_amount=holder.ui_amount, usd_value=usd)
        else:
            entries.append(
                OverlapEntry(
                    address=address,
                    per_token=legs,
                    total_usd=sum((leg.usd_value for leg in legs.values()), Decimal("0")),
                )
            )

    entries.sort(key=lambda e: (-e.total_usd, e.address))
    return entries


def pairwise_overlap(
    holders_a: HolderMap,
    holders_b: HolderMap,
    mint_a: str,
    mint_b: str,
    price_a: Decimal | None = None,
    price_b: Decimal | None = None,
) -> list[OverlapEntry]:
    return multi_overlap([holders_a, holders_b], [mint_a, mint_b], {mint_a: price_a, mint_b: price_b})


def triple_overlap(
    holders_a: HolderMap,
    holders_b: HolderMap,
    holders_c: HolderMap,
    mints: Sequence[str],
    prices: Mapping[str, Decimal | None],
) -> list[OverlapEntry]:
    return multi_overlap([holders_a, holders_b, holders_c], mints, prices)


def find_overlaps(
    token_maps: Mapping[str, HolderMap],
    prices: Mapping[str, Decimal | None],
) -> dict[str, list[OverlapEntry]]:
    """Overlap groups keyed by token letters in request order.

    2 tokens -> {"ab"}; 3 tokens -> {"abc", "ab", "ac", "bc"}.
    """
    mints = list(token_maps)
    if len(mints) not in (2, 3):
        raise InvalidInputError(f"Overlap needs 2 or 3 tokens, got {len(mints)}")

    letters = dict(zip(mints, GROUP_KEYS))
    groups: dict[str, list[OverlapEntry]] = {}
    if len(mints) == 3:
        groups["abc"] = multi_overlap([token_maps[m] for m in mints], mints, prices)
    for pair in combinations(mints, 2):
        key = "".join(letters[m] for m in pair)
        groups[key] = multi_overlap([token_maps[m] for m in pair], list(pair), prices)

    logger.debug(
        "[OVERLAP] " + ", ".join(f"{key}={len(entries)}" for key, entries in groups.items())
    )
    return groups


def group_tokens(group_key: str, mints: Sequence[str]) -> list[str]:
    return [mints[GROUP_KEYS.index(letter)] for letter in group_key]


def combined_tier(total_usd: Decimal) -> Tier:
    # Every overlap entry has >= $200 combined, Shrimp only guards odd inputs
    return classify_tier(total_usd) or Tier.SHRIMP


def select_notable(
    entries: Sequence[OverlapEntry],
    labels: Mapping[str, HolderLabel],
    *,
    limit: int = NOTABLE_LIMIT,
) -> list[OverlapEntry]:
    """Labeled wallets first, then unlabeled whales, each by combined USD desc."""
    by_usd = sorted(entries, key=lambda e: (-e.total_usd, e.address))
    labeled = [e for e in by_usd if e.address in labels]
    whales = [
        e for e in by_usd
        if e.address not in labels and e.total_usd >= WHALE_THRESHOLD_USD
    ]
    return (labeled + whales)[:limit]


def summarize_group(
    entries: Sequence[OverlapEntry],
    tokens: Sequence[str],
    *,
    labels: Mapping[str, HolderLabel] | None = None,
    supplies: Mapping[str, Decimal | None] | None = None,
) -> OverlapGroupSummary:
    labels = labels or {}
    supplies = supplies or {}
    wallet_count = len(entries)

    counts: dict[Tier, int] = empty_tier_map(0)
    for entry in entries:
        counts[combined_tier(entry.total_usd)] += 1

    percent_supply: dict[str, Decimal] = {}
    for mint in tokens:
        held = sum(
            (e.per_token[mint].ui_amount for e in entries if mint in e.per_token),
            Decimal("0"),
        )
        percent_supply[mint] = percent_of_supply(held, supplies.get(mint))

    notable = [
        NotableWallet(
            address=e.address,
            label=labels[e.address].label if e.address in labels else None,
            tier=combined_tier(e.total_usd),
            total_usd=e.total_usd,
            usd_by_token={
                mint: e.per_token[mint].usd_value if mint in e.per_token else Decimal("0")
                for mint in tokens
            },
        )
        for e in select_notable(entries, labels)
    ]

    whale_heavy = shrimp_growth = False
    if wallet_count > 0:
        small = counts[Tier.SHRIMP] + counts[Tier.FISH]
        whale_heavy = Decimal(counts[Tier.WHALE]) / wallet_count >= WHALE_HEAVY_RATIO
        shrimp_growth = Decimal(small) / wallet_count >= SHRIMP_GROWTH_RATIO

    return OverlapGroupSummary(
        tokens=list(tokens),
        wallet_count=wallet_count,
        tier_counts={tier: counts[tier] for tier in TIERS_ASCENDING},
        percent_supply=percent_supply,
        notable_wallets=notable,
        whale_heavy=whale_heavy,
        shrimp_growth=shrimp_growth,
    )
