"""Tests for raw balance normalization."""

from decimal import Decimal

import pytest

from holder_audit.analytics.errors import InvalidDecimalsError, InvalidInputError
from holder_audit.analytics.normalizer import (
    normalize_amount,
    normalize_holders,
    normalize_supply,
)
from holder_audit.analytics.tiers import Tier
from holder_audit.analytics.types import HolderBalance, TokenSupply


def test_normalize_amount_exact() -> None:
    assert normalize_amount(1_500_000, 6) == Decimal("1.5")
    assert normalize_amount(0, 9) == Decimal("0")


def test_max_u64_keeps_every_digit() -> None:
    raw = 18_446_744_073_709_551_615
    assert normalize_amount(raw, 9) == Decimal("18446744073.709551615")


def test_zero_decimals() -> None:
    assert normalize_amount(42, 0) == Decimal("42")


@pytest.mark.parametrize("decimals", [-1, 31])
def test_invalid_decimals(decimals: int) -> None:
    with pytest.raises(InvalidDecimalsError):
        normalize_amount(1, decimals)


def test_invalid_decimals_is_input_error() -> None:
    with pytest.raises(InvalidInputError):
        normalize_holders([HolderBalance("a", 1, 6)], -3, None)


def test_supply() -> None:
    assert normalize_supply(TokenSupply(raw_amount=1_000_000_000_000, decimals=6)) == Decimal("1000000")


def test_holders_with_price() -> None:
    balances = [
        HolderBalance(owner="whale", raw_amount=500_000 * 10**6, decimals=6),
        HolderBalance(owner="dust", raw_amount=50 * 10**6, decimals=6),
    ]
    holders = normalize_holders(balances, 6, Decimal("1"))

    assert holders[0].ui_amount == Decimal("500000")
    assert holders[0].usd_value == Decimal("500000")
    assert holders[0].tier is Tier.WHALE
    assert holders[0].raw_amount == 500_000 * 10**6
    assert holders[1].tier is None  # $50 is below the eligibility floor


def test_holders_without_price() -> None:
    holders = normalize_holders([HolderBalance("a", 10**9, 9)], 9, None)
    assert holders[0].ui_amount == Decimal("1")
    assert holders[0].usd_value is None
    assert holders[0].tier is None
