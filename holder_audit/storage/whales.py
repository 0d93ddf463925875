from collections.abc import Iterable
from datetime import datetime, timedelta

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from holder_audit.analytics.types import RetentionCounts, WhaleRecord
from holder_audit.models.whale import WhaleDuration


def _to_record(row: WhaleDuration) -> WhaleRecord:
    return WhaleRecord(
        address=row.address,
        token_address=row.token_address,
        first_seen=row.first_seen,
        last_seen=row.last_seen,
        consecutive_days=row.consecutive_days,
        balance=row.balance,
        usd_value=row.usd_value,
        snapshot_id=row.snapshot_id,
    )


class SqlWhaleRepository:
    """whale_durations table, one row per (token, wallet)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def upsert(self, record: WhaleRecord) -> None:
        async with self._session_factory() as session:
            row = (
                await session.execute(
                    select(WhaleDuration).where(
                        WhaleDuration.token_address == record.token_address,
                        WhaleDuration.address == record.address,
                    )
                )
            ).scalar_one_or_none()

            if row is None:
                session.add(
                    WhaleDuration(
                        address=record.address,
                        token_address=record.token_address,
                        first_seen=record.first_seen,
                        last_seen=record.last_seen,
                        consecutive_days=record.consecutive_days,
                        balance=record.balance,
                        usd_value=record.usd_value,
                        snapshot_id=record.snapshot_id,
                    )
                )
            else:
                row.last_seen = record.last_seen
                row.consecutive_days = record.consecutive_days
                row.balance = record.balance
                row.usd_value = record.usd_value
                row.snapshot_id = record.snapshot_id
            await session.commit()

    async def query_by_token(self, token_address: str) -> list[WhaleRecord]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(WhaleDuration).where(WhaleDuration.token_address == token_address)
                )
            ).scalars().all()
        return [_to_record(r) for r in rows]

    async def query_by_snapshot(self, token_address: str, snapshot_id: int) -> list[WhaleRecord]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(WhaleDuration)
                    .where(
                        WhaleDuration.token_address == token_address,
                        WhaleDuration.snapshot_id == snapshot_id,
                    )
                    .order_by(WhaleDuration.usd_value.desc())
                )
            ).scalars().all()
        return [_to_record(r) for r in rows]

    async def query_retention(
        self,
        token_address: str,
        snapshot_id: int,
        as_of: datetime,
        windows_days: Iterable[int],
    ) -> RetentionCounts:
        """Current whales of the snapshot, and how many were last seen within each window."""
        async with self._session_factory() as session:
            current = select(WhaleDuration).where(
                WhaleDuration.token_address == token_address,
                WhaleDuration.snapshot_id == snapshot_id,
            ).subquery()

            total = (
                await session.execute(select(func.count()).select_from(current))
            ).scalar_one()

            retained: dict[int, int] = {}
            for days in windows_days:
                cutoff = as_of - timedelta(days=days)
                retained[days] = (
                    await session.execute(
                        select(func.count())
                        .select_from(current)
                        .where(current.c.last_seen >= cutoff)
                    )
                ).scalar_one()

        return RetentionCounts(total=total, retained=retained)

    async def cross_token_whales(self, *, since: datetime, min_tokens: int) -> dict[str, int]:
        async with self._session_factory() as session:
            token_count = func.count(distinct(WhaleDuration.token_address))
            rows = (
                await session.execute(
                    select(WhaleDuration.address, token_count)
                    .where(WhaleDuration.last_seen >= since)
                    .group_by(WhaleDuration.address)
                    .having(token_count >= min_tokens)
                )
            ).all()
        return {address: count for address, count in rows}
