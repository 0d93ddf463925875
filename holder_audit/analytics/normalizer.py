"""Raw integer balances -> ui amounts and USD values."""

from collections.abc import Iterable
from decimal import Decimal

from holder_audit.analytics.errors import InvalidDecimalsError
from holder_audit.analytics.tiers import classify_tier
from holder_audit.analytics.types import HolderBalance, NormalizedHolder, TokenSupply

MAX_DECIMALS = 30


def validate_decimals(decimals: int) -> None:
    if not isinstance(decimals, int) or decimals < 0 or decimals > MAX_DECIMALS:
        raise InvalidDecimalsError(decimals)


def normalize_amount(raw_amount: int, decimals: int) -> Decimal:
    """Exact raw / 10**decimals. Decimal scaling keeps every digit of a u64."""
    validate_decimals(decimals)
    return Decimal(raw_amount).scaleb(-decimals)


def normalize_supply(supply: TokenSupply) -> Decimal:
    return normalize_amount(supply.raw_amount, supply.decimals)


def normalize_holders(
    balances: Iterable[HolderBalance],
    decimals: int,
    price_usd: Decimal | None,
) -> list[NormalizedHolder]:
    """Normalize a mint's holder list with a uniform decimals value.

    usd_value is None when the price is unknown; tier follows usd_value.
    """
    validate_decimals(decimals)
    holders: list[NormalizedHolder] = []
    for bal in balances:
        ui_amount = Decimal(bal.raw_amount).scaleb(-decimals)
        usd_value = ui_amount * price_usd if price_usd is not None else None
        holders.append(
            NormalizedHolder(
                owner=bal.owner,
                ui_amount=ui_amount,
                usd_value=usd_value,
                tier=classify_tier(usd_value),
                raw_amount=bal.raw_amount,
                decimals=decimals,
            )
        )
    return holders
