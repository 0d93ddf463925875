from collections.abc import Callable, Sequence
from datetime import datetime

from loguru import logger
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from holder_audit.analytics.dedup import utc_now
from holder_audit.analytics.types import HolderLabel
from holder_audit.models.label import WalletLabel

LOOKUP_CHUNK = 500  # keeps IN (...) lists well under driver parameter limits


class SqlLabelRepository:
    """wallet_labels table. Serves both label lookups and label writes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def fetch_labels(self, addresses: Sequence[str]) -> dict[str, HolderLabel]:
        """Unexpired labels for the given addresses."""
        now = self._clock()
        unique = list(dict.fromkeys(addresses))
        labels: dict[str, HolderLabel] = {}

        async with self._session_factory() as session:
            for start in range(0, len(unique), LOOKUP_CHUNK):
                chunk = unique[start:start + LOOKUP_CHUNK]
                rows = (
                    await session.execute(
                        select(WalletLabel).where(
                            WalletLabel.address.in_(chunk),
                            or_(WalletLabel.expires_at.is_(None), WalletLabel.expires_at > now),
                        )
                    )
                ).scalars().all()
                for row in rows:
                    labels[row.address] = HolderLabel(type=row.type, label=row.label)
        return labels

    async def upsert_label(
        self, address: str, type_: str, label: str, *, expires_at: datetime | None
    ) -> None:
        async with self._session_factory() as session:
            row = await session.get(WalletLabel, address)
            if row is None:
                session.add(
                    WalletLabel(
                        address=address,
                        type=type_,
                        label=label,
                        expires_at=expires_at,
                        updated_at=self._clock(),
                    )
                )
            else:
                row.type = type_
                row.label = label
                row.expires_at = expires_at
                row.updated_at = self._clock()
            await session.commit()

    async def purge_expired(self, now: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(WalletLabel).where(
                    WalletLabel.expires_at.is_not(None),
                    WalletLabel.expires_at < now,
                )
            )
            await session.commit()
        if result.rowcount:
            logger.info(f"[LABELS] Purged {result.rowcount} expired labels")
        return result.rowcount or 0
