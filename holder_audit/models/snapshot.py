from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from holder_audit.models.base import Base


class TokenSnapshot(Base):
    """One audit run for one token at one point in time."""

    __tablename__ = "token_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True)
    token_address: Mapped[str] = mapped_column(String(64))
    captured_at: Mapped[datetime] = mapped_column(DateTime)
    bucket_key: Mapped[int] = mapped_column(BigInteger)  # floor(epoch / 600)
    price_usd: Mapped[Decimal | None] = mapped_column(Numeric)
    total_holders: Mapped[int] = mapped_column(Integer, default=0)
    total_supply_ui: Mapped[Decimal | None] = mapped_column(Numeric)

    # Holder counts per tier (eligible holders only, usd >= 100)
    shrimp_count: Mapped[int] = mapped_column(Integer, default=0)
    fish_count: Mapped[int] = mapped_column(Integer, default=0)
    dolphin_count: Mapped[int] = mapped_column(Integer, default=0)
    shark_count: Mapped[int] = mapped_column(Integer, default=0)
    whale_count: Mapped[int] = mapped_column(Integer, default=0)

    # Top-N balance sums (ui units)
    top1_balance: Mapped[Decimal] = mapped_column(Numeric, default=0)
    top10_balance: Mapped[Decimal] = mapped_column(Numeric, default=0)
    top50_balance: Mapped[Decimal] = mapped_column(Numeric, default=0)
    top100_balance: Mapped[Decimal] = mapped_column(Numeric, default=0)

    # Supply held per tier (ui units, sub-$100 folded into shrimp)
    shrimp_supply_ui: Mapped[Decimal] = mapped_column(Numeric, default=0)
    fish_supply_ui: Mapped[Decimal] = mapped_column(Numeric, default=0)
    dolphin_supply_ui: Mapped[Decimal] = mapped_column(Numeric, default=0)
    shark_supply_ui: Mapped[Decimal] = mapped_column(Numeric, default=0)
    whale_supply_ui: Mapped[Decimal] = mapped_column(Numeric, default=0)

    # Backfilled after insert, never affects aggregates
    token_name: Mapped[str | None] = mapped_column(String(255))
    token_symbol: Mapped[str | None] = mapped_column(String(50))

    __table_args__ = (
        UniqueConstraint("token_address", "bucket_key", name="uq_snapshots_token_bucket"),
        Index("idx_snapshots_token_time", "token_address", "captured_at"),
    )


class TokenTopHolder(Base):
    """Largest eligible holders of a snapshot (top 50 or >= $100k)."""

    __tablename__ = "token_top_holders"

    id: Mapped[int] = mapped_column(primary_key=True)
    snapshot_id: Mapped[int] = mapped_column(ForeignKey("token_snapshots.id", ondelete="CASCADE"))
    token_address: Mapped[str] = mapped_column(String(64))
    rank: Mapped[int] = mapped_column(Integer)
    address: Mapped[str] = mapped_column(String(64))
    amount_raw: Mapped[str] = mapped_column(String(40))  # u64 as text
    token_decimals: Mapped[int] = mapped_column(Integer)
    balance: Mapped[Decimal] = mapped_column(Numeric)
    usd_value: Mapped[Decimal | None] = mapped_column(Numeric)
    tier: Mapped[str | None] = mapped_column(String(10))

    __table_args__ = (
        Index("idx_top_holders_snapshot", "snapshot_id"),
        Index("idx_top_holders_token", "token_address"),
    )
