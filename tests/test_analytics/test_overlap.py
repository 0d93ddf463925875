"""Tests for multi-token holder overlap."""

from decimal import Decimal

import pytest

from holder_audit.analytics.errors import InvalidInputError
from holder_audit.analytics.overlap import (
    combined_tier,
    find_overlaps,
    group_tokens,
    multi_overlap,
    pairwise_overlap,
    summarize_group,
    triple_overlap,
)
from holder_audit.analytics.tiers import Tier, classify_tier
from holder_audit.analytics.types import HolderLabel, NormalizedHolder

MINT_A = "So11111111111111111111111111111111111111112"
MINT_B = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
MINT_C = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"


def _h(owner: str, usd: str) -> NormalizedHolder:
    value = Decimal(usd)
    return NormalizedHolder(owner=owner, ui_amount=value, usd_value=value, tier=classify_tier(value))


def _map(*holders: NormalizedHolder) -> dict[str, NormalizedHolder]:
    return {h.owner: h for h in holders}


def test_every_leg_needs_100_usd():
    """$50 in A and $500 in B is not an overlap even though the sum is $550."""
    entries = pairwise_overlap(_map(_h("w", "50")), _map(_h("w", "500")), MINT_A, MINT_B)
    assert entries == []


def test_combined_usd_classifies_group():
    entries = pairwise_overlap(_map(_h("w", "150")), _map(_h("w", "200")), MINT_A, MINT_B)

    assert len(entries) == 1
    assert entries[0].total_usd == Decimal("350")
    assert combined_tier(entries[0].total_usd) is Tier.SHRIMP
    assert entries[0].per_token[MINT_A].usd_value == Decimal("150")


def test_leg_usd_falls_back_to_price():
    holder = NormalizedHolder(owner="w", ui_amount=Decimal("10"), usd_value=None, tier=None)
    entries = multi_overlap(
        [_map(holder), _map(_h("w", "1000"))],
        [MINT_A, MINT_B],
        {MINT_A: Decimal("20"), MINT_B: Decimal("1")},
    )
    assert entries[0].per_token[MINT_A].usd_value == Decimal("200")


def test_sorted_by_combined_usd():
    a = _map(_h("x", "100"), _h("y", "5000"))
    b = _map(_h("x", "100"), _h("y", "5000"))
    assert [e.address for e in pairwise_overlap(a, b, MINT_A, MINT_B)] == ["y", "x"]


def test_triple_overlap_needs_all_three():
    a = _map(_h("all", "300"), _h("ab", "300"))
    b = _map(_h("all", "300"), _h("ab", "300"))
    c = _map(_h("all", "300"))
    entries = triple_overlap(a, b, c, [MINT_A, MINT_B, MINT_C], {})
    assert [e.address for e in entries] == ["all"]
    assert entries[0].total_usd == Decimal("900")


def test_find_overlaps_group_keys():
    maps = {
        MINT_A: _map(_h("all", "300"), _h("ac", "300")),
        MINT_B: _map(_h("all", "300"), _h("bc", "300")),
        MINT_C: _map(_h("all", "300"), _h("ac", "300"), _h("bc", "300")),
    }
    groups = find_overlaps(maps, {})

    assert list(groups) == ["abc", "ab", "ac", "bc"]
    assert [e.address for e in groups["abc"]] == ["all"]
    assert {e.address for e in groups["ac"]} == {"all", "ac"}
    assert {e.address for e in groups["bc"]} == {"all", "bc"}
    assert group_tokens("ac", list(maps)) == [MINT_A, MINT_C]


def test_find_overlaps_pair_only():
    groups = find_overlaps({MINT_A: {}, MINT_B: {}}, {})
    assert list(groups) == ["ab"]
    assert groups["ab"] == []


@pytest.mark.parametrize("count", [1, 4])
def test_find_overlaps_rejects_bad_size(count):
    maps = {f"mint{i}": {} for i in range(count)}
    with pytest.raises(InvalidInputError):
        find_overlaps(maps, {})


def test_summary_tiers_supply_and_health():
    a = _map(_h("whale", "200000"), _h("s1", "200"), _h("s2", "300"), _h("s3", "400"))
    b = _map(_h("whale", "100000"), _h("s1", "200"), _h("s2", "300"), _h("s3", "400"))
    entries = pairwise_overlap(a, b, MINT_A, MINT_B)

    summary = summarize_group(
        entries,
        [MINT_A, MINT_B],
        supplies={MINT_A: Decimal("1000000"), MINT_B: None},
    )

    assert summary.wallet_count == 4
    assert summary.tier_counts[Tier.WHALE] == 1
    assert summary.tier_counts[Tier.SHRIMP] == 3
    assert summary.percent_supply[MINT_A] == Decimal("200900") / Decimal("1000000")
    assert summary.percent_supply[MINT_B] == 0
    assert summary.whale_heavy  # 1/4 >= 10%
    assert summary.shrimp_growth  # 3/4 >= 60%
    assert [w.address for w in summary.notable_wallets] == ["whale"]
    assert summary.notable_wallets[0].usd_by_token == {
        MINT_A: Decimal("200000"),
        MINT_B: Decimal("100000"),
    }


def test_labeled_wallets_lead_notables():
    a = _map(_h("whale", "300000"), _h("cex", "500"))
    b = _map(_h("whale", "300000"), _h("cex", "500"))
    labels = {"cex": HolderLabel(type="CEX", label="Binance Hot Wallet")}

    summary = summarize_group(pairwise_overlap(a, b, MINT_A, MINT_B), [MINT_A, MINT_B], labels=labels)

    assert [w.address for w in summary.notable_wallets] == ["cex", "whale"]
    assert summary.notable_wallets[0].label == "Binance Hot Wallet"
    assert summary.notable_wallets[1].label is None


def test_empty_group_summary():
    summary = summarize_group([], [MINT_A, MINT_B])
    assert summary.wallet_count == 0
    assert not summary.whale_heavy
    assert not summary.shrimp_growth
    assert summary.notable_wallets == []
