"""Pydantic models for Birdeye Data Services API responses."""

from decimal import Decimal

from pydantic import BaseModel


class BirdeyePrice(BaseModel):
    """Response from /defi/price. 10 CU."""

    value: Decimal | None = None
    updateUnixTime: int | None = None
    liquidity: Decimal | None = None

    model_config = {"extra": "ignore"}
