"""Audit and compare payloads as plain JSON-ready dicts.

Fresh audits and cached reads share format_audit_payload so both surfaces
return the same shape.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any

from holder_audit.analytics.aggregation import HolderAggregates, percent_of_supply
from holder_audit.analytics.deltas import SnapshotDeltas
from holder_audit.analytics.dedup import DedupDecision
from holder_audit.analytics.overlap import OverlapGroupSummary
from holder_audit.analytics.tiers import TIERS_ASCENDING, WHALE_THRESHOLD_USD
from holder_audit.analytics.types import HolderLabel, Snapshot, TopHolderRow
from holder_audit.analytics.whale_tracker import WhaleStats

NOTABLE_HOLDERS_LIMIT = 20
WHALES_DETECTED_LIMIT = 50
TOP_N_KEYS = {1: "top1", 10: "top10", 50: "top50", 100: "top100"}


def _num(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def percent_change(current: Decimal, previous: Decimal | None, has_previous: bool) -> float | None:
    """Balance change vs the previous snapshot in percent.

    None without a previous snapshot; a holder missing from it counts as new (+100).
    """
    if not has_previous:
        return None
    prev = previous or Decimal("0")
    if prev > 0 and current > 0:
        return float((current - prev) / prev * 100)
    if prev > 0:
        return -100.0
    if current > 0:
        return 100.0
    return 0.0


def select_notable_holders(
    rows: Sequence[TopHolderRow],
    labels: Mapping[str, HolderLabel],
    limit: int = NOTABLE_HOLDERS_LIMIT,
) -> list[TopHolderRow]:
    """Labeled holders first, then unlabeled whales, each by USD value desc."""
    by_usd = sorted(rows, key=lambda r: (-(r.usd_value or 0), r.rank))
    labeled = [r for r in by_usd if r.address in labels]
    whales = [
        r for r in by_usd
        if r.address not in labels and (r.usd_value or 0) >= WHALE_THRESHOLD_USD
    ]
    return (labeled + whales)[:limit]


def format_notable_holders(
    rows: Sequence[TopHolderRow],
    labels: Mapping[str, HolderLabel],
    total_supply_ui: Decimal | None,
    previous_rows: Sequence[TopHolderRow] | None,
) -> list[dict[str, Any]]:
    previous = {r.address: r.balance for r in previous_rows or ()}
    has_previous = previous_rows is not None
    return [
        {
            "address": r.address,
            "label": labels[r.address].label if r.address in labels else None,
            "balance_ui": float(r.balance),
            "balance_usd": _num(r.usd_value) or 0.0,
            "percent_supply": float(percent_of_supply(r.balance, total_supply_ui)),
            "percent_change": percent_change(r.balance, previous.get(r.address), has_previous),
        }
        for r in rows
    ]


def format_data_age(captured_at: datetime, now: datetime) -> dict[str, Any]:
    minutes = max(int((now - captured_at).total_seconds() // 60), 0)
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        text = f"{days} day{'s' if days > 1 else ''} ago"
    elif hours > 0:
        text = f"{hours} hour{'s' if hours > 1 else ''} ago"
    else:
        text = f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    return {"minutes": minutes, "hours": hours, "days": days, "formatted": text}


def format_deduped(decision: DedupDecision | None, snapshot_id: int) -> dict[str, Any]:
    return {
        "snapshot_id": snapshot_id,
        "created": False,
        "deduped": True,
        "matched_by": decision.matched_by if decision else "insert",
    }


def format_whales(stats: WhaleStats, market_cap_usd: Decimal | None) -> dict[str, Any]:
    """Whale block; supply_percent is the top whales' USD over market cap."""
    top_usd = sum((w.usd_value for w in stats.top), Decimal("0"))
    supply_percent = 0.0
    if stats.count > 0:
        supply_percent = float(top_usd / (market_cap_usd or Decimal("1")) * 100)
    data = stats.as_dict()
    data["supply_percent"] = supply_percent
    return data


def format_audit_payload(
    *,
    mint: str,
    decimals: int | None,
    aggregates: HolderAggregates,
    snapshot: Snapshot,
    liquidity_usd: Decimal | None,
    deltas: SnapshotDeltas | None,
    notable_holders: list[dict[str, Any]],
    whales_detected: Sequence[str],
    whale_stats: WhaleStats | None,
    whale_stats_pending: bool,
    created: bool = True,
    data_age: dict[str, Any] | None = None,
) -> dict[str, Any]:
    price = aggregates.price_usd
    supply = aggregates.total_supply_ui
    market_cap = price * supply if price is not None and supply is not None else None
    total_all = aggregates.total_holders

    # Tier counts are meaningless without a price: report nulls, not zeros
    tier_counts: dict[str, int | None] = {
        tier.value: (aggregates.tier_counts.get(tier, 0) if price is not None else None)
        for tier in TIERS_ASCENDING
    }
    percent_holders_by_tier = {
        tier.value: (aggregates.tier_counts.get(tier, 0) / total_all if total_all else 0.0)
        for tier in TIERS_ASCENDING
    }

    payload: dict[str, Any] = {
        "snapshot_id": snapshot.id,
        "created": created,
        "deduped": False,
        "token": {
            "mint": mint,
            "decimals": decimals,
            "name": snapshot.token_name,
            "symbol": snapshot.token_symbol,
        },
        "captured_at": snapshot.captured_at.isoformat(),
        "price_usd": _num(price),
        "market_cap_usd": _num(market_cap),
        "liquidity_usd": _num(liquidity_usd),
        "total_supply_ui": _num(supply),
        "total_holders_all": total_all,
        "total_holders_eligible": aggregates.eligible_holders,
        "tier_counts": tier_counts,
        "percent_holders_by_tier": percent_holders_by_tier,
        "topN_percent_supply": {
            key: float(aggregates.top_n_percent.get(k, Decimal("0")))
            for k, key in TOP_N_KEYS.items()
        },
        "percent_supply_by_tier": {
            tier.value: (float(aggregates.tier_supply_share.get(tier, 0)) if price is not None else 0.0)
            for tier in TIERS_ASCENDING
        },
        "deltas": deltas.as_dict() if deltas is not None else None,
        "notable_holders": notable_holders,
        "whales_detected": list(whales_detected)[:WHALES_DETECTED_LIMIT],
        "whale_stats_pending": whale_stats_pending,
    }
    if whale_stats is not None:
        payload["whales"] = format_whales(whale_stats, market_cap)
    if data_age is not None:
        payload["data_age"] = data_age
        payload["is_recent"] = data_age["minutes"] <= 10
    return payload


def format_overlap_group(summary: OverlapGroupSummary) -> dict[str, Any]:
    return {
        "tokens": summary.tokens,
        "wallet_count": summary.wallet_count,
        "tier_counts": {tier.value: summary.tier_counts.get(tier, 0) for tier in TIERS_ASCENDING},
        "percent_supply": {mint: float(pct) for mint, pct in summary.percent_supply.items()},
        "notable_wallets": [
            {
                "address": w.address,
                "label": w.label,
                "tier": w.tier.value,
                "total_usd": float(w.total_usd),
                **{f"usd_in_{mint}": float(usd) for mint, usd in w.usd_by_token.items()},
            }
            for w in summary.notable_wallets
        ],
        "health": {
            "whale_heavy": summary.whale_heavy,
            "shrimp_growth": summary.shrimp_growth,
        },
    }


def format_compare_payload(
    mints: Sequence[str], summaries: Mapping[str, OverlapGroupSummary]
) -> dict[str, Any]:
    return {
        "tokens": list(mints),
        "overlaps": {key: format_overlap_group(s) for key, s in summaries.items()},
    }
