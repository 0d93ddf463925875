"""Pydantic models for Helius RPC / DAS token responses."""

from pydantic import BaseModel, Field


class HeliusTokenAccount(BaseModel):
    """One SPL token account from DAS getTokenAccounts."""

    address: str = ""
    mint: str = ""
    owner: str
    amount: int = 0  # raw u64

    model_config = {"extra": "ignore"}


class HeliusTokenAccountsPage(BaseModel):
    total: int = 0
    limit: int = 0
    page: int = 0
    token_accounts: list[HeliusTokenAccount] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class HeliusTokenSupply(BaseModel):
    """`value` of RPC getTokenSupply."""

    amount: int  # raw u64, sent as a string
    decimals: int
    uiAmountString: str | None = None

    model_config = {"extra": "ignore"}
