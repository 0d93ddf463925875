from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from holder_audit.models.base import Base


class WhaleDuration(Base):
    """How long a wallet has stayed whale-tier for a token."""

    __tablename__ = "whale_durations"

    id: Mapped[int] = mapped_column(primary_key=True)
    address: Mapped[str] = mapped_column(String(64))
    token_address: Mapped[str] = mapped_column(String(64))
    first_seen: Mapped[datetime] = mapped_column(DateTime)
    last_seen: Mapped[datetime] = mapped_column(DateTime)
    consecutive_days: Mapped[int] = mapped_column(Integer, default=1)
    balance: Mapped[Decimal] = mapped_column(Numeric)
    usd_value: Mapped[Decimal] = mapped_column(Numeric)
    snapshot_id: Mapped[int] = mapped_column(Integer)

    __table_args__ = (
        UniqueConstraint("token_address", "address", name="uq_whale_token_address"),
        Index("idx_whale_token_snapshot", "token_address", "snapshot_id"),
        Index("idx_whale_last_seen", "last_seen"),
    )
