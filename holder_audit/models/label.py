from datetime import datetime

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from holder_audit.models.base import Base


class WalletLabel(Base):
    """Known wallet identity: CEX, LP, TopHolder, Whale, CrossTokenWhale..."""

    __tablename__ = "wallet_labels"

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(30))
    label: Mapped[str] = mapped_column(String(255))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_wallet_labels_type", "type"),
        Index("idx_wallet_labels_expires", "expires_at"),
    )
