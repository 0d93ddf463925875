"""Tier counts, top-N balance sums and supply shares over a normalized holder set."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from holder_audit.analytics.tiers import (
    ELIGIBILITY_FLOOR_USD,
    TIERS_ASCENDING,
    Tier,
    classify_tier,
    empty_tier_map,
)
from holder_audit.analytics.types import TOP_N_RANKS, NormalizedHolder, Snapshot, TopHolderRow

ZERO = Decimal("0")
TOP_HOLDERS_KEPT = 50
TOP_HOLDER_MIN_USD = Decimal("100000")


@dataclass
class HolderAggregates:
    """Everything an audit persists and reports about one holder set."""

    total_holders: int
    eligible_holders: int
    price_usd: Decimal | None
    total_supply_ui: Decimal | None
    tier_counts: dict[Tier, int]
    top_n_balances: dict[int, Decimal]
    top_n_percent: dict[int, Decimal] = field(default_factory=dict)
    tier_supply_ui: dict[Tier, Decimal] = field(default_factory=dict)
    tier_supply_share: dict[Tier, Decimal] = field(default_factory=dict)

    @property
    def top10_percent(self) -> Decimal:
        return self.top_n_percent.get(10, ZERO)


def is_eligible(holder: NormalizedHolder) -> bool:
    return holder.usd_value is not None and holder.usd_value >= ELIGIBILITY_FLOOR_USD


def eligible_holders(holders: Iterable[NormalizedHolder]) -> list[NormalizedHolder]:
    """Drop holders without a USD value or below the $100 floor."""
    return [h for h in holders if is_eligible(h)]


def tier_counts(holders: Iterable[NormalizedHolder]) -> dict[Tier, int]:
    counts: dict[Tier, int] = empty_tier_map(0)
    for holder in eligible_holders(holders):
        tier = classify_tier(holder.usd_value)
        if tier is not None:
            counts[tier] += 1
    return counts


def rank_holders(holders: Iterable[NormalizedHolder]) -> list[NormalizedHolder]:
    """Eligible holders, largest ui_amount first; ties broken by owner for determinism."""
    return sorted(eligible_holders(holders), key=lambda h: (-h.ui_amount, h.owner))


def top_n_balances(
    holders: Iterable[NormalizedHolder],
    ranks: Sequence[int] = TOP_N_RANKS,
) -> dict[int, Decimal]:
    """Sum of the K largest eligible balances for each K. Fewer holders than K sums all."""
    ranked = rank_holders(holders)
    return {k: sum((h.ui_amount for h in ranked[:k]), ZERO) for k in ranks}


def percent_of_supply(balance: Decimal, total_supply_ui: Decimal | None) -> Decimal:
    """balance / supply as a fraction, 0 when supply is unknown or zero."""
    if not total_supply_ui:
        return ZERO
    return balance / total_supply_ui


def tier_supply_ui(holders: Iterable[NormalizedHolder]) -> dict[Tier, Decimal]:
    """ui amount held per tier.

    Every holder with a USD value counts here, sub-$100 holders folded into
    Shrimp, so these shares can approach 100% of supply while tier_counts
    only covers holders >= $100.
    """
    sums: dict[Tier, Decimal] = empty_tier_map(ZERO)
    for holder in holders:
        if holder.usd_value is None:
            continue
        tier = classify_tier(holder.usd_value) or Tier.SHRIMP
        sums[tier] += holder.ui_amount
    return sums


def tier_supply_share(
    holders: Iterable[NormalizedHolder],
    total_supply_ui: Decimal | None,
) -> dict[Tier, Decimal]:
    sums = tier_supply_ui(holders)
    return {tier: percent_of_supply(sums[tier], total_supply_ui) for tier in TIERS_ASCENDING}


def aggregate(
    holders: Sequence[NormalizedHolder],
    *,
    total_supply_ui: Decimal | None,
    price_usd: Decimal | None,
    total_holders: int | None = None,
) -> HolderAggregates:
    """Compute all aggregates for an (already exclusion-filtered) holder set.

    total_holders defaults to len(holders); audits pass the count before
    CEX/LP exclusion so the raw holder count stays comparable across runs.
    """
    counts = tier_counts(holders)
    top_n = top_n_balances(holders)
    supply_ui = tier_supply_ui(holders)
    return HolderAggregates(
        total_holders=len(holders) if total_holders is None else total_holders,
        eligible_holders=sum(counts.values()),
        price_usd=price_usd,
        total_supply_ui=total_supply_ui,
        tier_counts=counts,
        top_n_balances=top_n,
        top_n_percent={k: percent_of_supply(v, total_supply_ui) for k, v in top_n.items()},
        tier_supply_ui=supply_ui,
        tier_supply_share={
            tier: percent_of_supply(supply_ui[tier], total_supply_ui) for tier in TIERS_ASCENDING
        },
    )


def aggregates_from_snapshot(snapshot: Snapshot) -> HolderAggregates:
    """Rebuild the aggregates of a stored snapshot for cached reads."""
    supply = snapshot.total_supply_ui
    return HolderAggregates(
        total_holders=snapshot.total_holders,
        eligible_holders=sum(snapshot.tier_counts.values()),
        price_usd=snapshot.price_usd,
        total_supply_ui=supply,
        tier_counts=dict(snapshot.tier_counts),
        top_n_balances=dict(snapshot.top_n_balances),
        top_n_percent={k: percent_of_supply(v, supply) for k, v in snapshot.top_n_balances.items()},
        tier_supply_ui=dict(snapshot.tier_supply_ui),
        tier_supply_share={
            tier: percent_of_supply(snapshot.tier_supply_ui.get(tier, ZERO), supply)
            for tier in TIERS_ASCENDING
        },
    )


def top_holder_rows(
    holders: Iterable[NormalizedHolder],
    *,
    keep_top: int = TOP_HOLDERS_KEPT,
    min_usd: Decimal = TOP_HOLDER_MIN_USD,
) -> list[TopHolderRow]:
    """Ranked eligible holders worth persisting: the top `keep_top` plus anyone >= min_usd."""
    rows: list[TopHolderRow] = []
    for rank, holder in enumerate(rank_holders(holders), 1):
        if rank > keep_top and (holder.usd_value is None or holder.usd_value < min_usd):
            continue
        rows.append(
            TopHolderRow(
                rank=rank,
                address=holder.owner,
                raw_amount=holder.raw_amount,
                decimals=holder.decimals,
                balance=holder.ui_amount,
                usd_value=holder.usd_value,
                tier=holder.tier,
            )
        )
    return rows
