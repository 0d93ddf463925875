"""Pydantic models for Jupiter Price API responses."""

from decimal import Decimal

from pydantic import BaseModel


class JupiterPrice(BaseModel):
    """Price data for a single token from Jupiter."""

    id: str  # mint address
    mint_symbol: str = ""
    price: Decimal | None = None
