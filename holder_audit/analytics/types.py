"""Domain records shared by the analytics engine, sources and repositories."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from holder_audit.analytics.tiers import Tier

TOP_N_RANKS: tuple[int, ...] = (1, 10, 50, 100)


@dataclass(frozen=True)
class HolderBalance:
    """Raw balance of one owner for one mint, summed over its token accounts."""

    owner: str
    raw_amount: int
    decimals: int


@dataclass(frozen=True)
class NormalizedHolder:
    owner: str
    ui_amount: Decimal
    usd_value: Decimal | None
    tier: Tier | None
    raw_amount: int = 0
    decimals: int = 0


@dataclass(frozen=True)
class TokenSupply:
    raw_amount: int
    decimals: int


@dataclass(frozen=True)
class HolderLabel:
    """Wallet identity from the label store or LP detection."""

    type: str  # "CEX", "LP", "LiquidityPool", "TopHolder", "Whale", ...
    label: str
    source: str = "db"


@dataclass
class Snapshot:
    """Persisted point-in-time aggregate for one token."""

    token_address: str
    captured_at: datetime
    bucket_key: int
    price_usd: Decimal | None
    total_holders: int
    tier_counts: dict[Tier, int]
    top_n_balances: dict[int, Decimal]
    total_supply_ui: Decimal | None
    tier_supply_ui: dict[Tier, Decimal]
    id: int | None = None
    token_name: str | None = None
    token_symbol: str | None = None

    @property
    def top10_balance(self) -> Decimal:
        return self.top_n_balances.get(10, Decimal("0"))


@dataclass(frozen=True)
class TopHolderRow:
    rank: int
    address: str
    raw_amount: int
    decimals: int
    balance: Decimal
    usd_value: Decimal | None
    tier: Tier | None


@dataclass
class WhaleRecord:
    address: str
    token_address: str
    first_seen: datetime
    last_seen: datetime
    consecutive_days: int
    balance: Decimal
    usd_value: Decimal
    snapshot_id: int


@dataclass(frozen=True)
class RetentionCounts:
    """Current whales of a snapshot and how many were seen within each window."""

    total: int
    retained: dict[int, int] = field(default_factory=dict)  # window days -> count


@dataclass(frozen=True)
class TokenLeg:
    ui_amount: Decimal
    usd_value: Decimal


@dataclass
class OverlapEntry:
    address: str
    per_token: dict[str, TokenLeg]
    total_usd: Decimal
    label: HolderLabel | None = None
