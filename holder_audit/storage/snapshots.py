"""Snapshot persistence, mapping domain Snapshot records to SQLAlchemy rows."""

from collections.abc import Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from holder_audit.analytics.errors import DedupRace
from holder_audit.analytics.tiers import Tier
from holder_audit.analytics.types import Snapshot, TopHolderRow
from holder_audit.models.snapshot import TokenSnapshot, TokenTopHolder

ZERO = Decimal("0")


def _sanitize(val: str | None) -> str | None:
    """Strip null bytes and control chars that PostgreSQL rejects."""
    if val is None:
        return None
    return val.replace("\x00", "").strip() or None


def snapshot_to_row(snapshot: Snapshot) -> TokenSnapshot:
    counts = snapshot.tier_counts
    supply = snapshot.tier_supply_ui
    top = snapshot.top_n_balances
    return TokenSnapshot(
        token_address=snapshot.token_address,
        captured_at=snapshot.captured_at,
        bucket_key=snapshot.bucket_key,
        price_usd=snapshot.price_usd,
        total_holders=snapshot.total_holders,
        total_supply_ui=snapshot.total_supply_ui,
        shrimp_count=counts.get(Tier.SHRIMP, 0),
        fish_count=counts.get(Tier.FISH, 0),
        dolphin_count=counts.get(Tier.DOLPHIN, 0),
        shark_count=counts.get(Tier.SHARK, 0),
        whale_count=counts.get(Tier.WHALE, 0),
        top1_balance=top.get(1, ZERO),
        top10_balance=top.get(10, ZERO),
        top50_balance=top.get(50, ZERO),
        top100_balance=top.get(100, ZERO),
        shrimp_supply_ui=supply.get(Tier.SHRIMP, ZERO),
        fish_supply_ui=supply.get(Tier.FISH, ZERO),
        dolphin_supply_ui=supply.get(Tier.DOLPHIN, ZERO),
        shark_supply_ui=supply.get(Tier.SHARK, ZERO),
        whale_supply_ui=supply.get(Tier.WHALE, ZERO),
        token_name=_sanitize(snapshot.token_name),
        token_symbol=_sanitize(snapshot.token_symbol),
    )


def row_to_snapshot(row: TokenSnapshot) -> Snapshot:
    return Snapshot(
        id=row.id,
        token_address=row.token_address,
        captured_at=row.captured_at,
        bucket_key=row.bucket_key,
        price_usd=row.price_usd,
        total_holders=row.total_holders,
        total_supply_ui=row.total_supply_ui,
        tier_counts={
            Tier.SHRIMP: row.shrimp_count,
            Tier.FISH: row.fish_count,
            Tier.DOLPHIN: row.dolphin_count,
            Tier.SHARK: row.shark_count,
            Tier.WHALE: row.whale_count,
        },
        top_n_balances={
            1: row.top1_balance,
            10: row.top10_balance,
            50: row.top50_balance,
            100: row.top100_balance,
        },
        tier_supply_ui={
            Tier.SHRIMP: row.shrimp_supply_ui,
            Tier.FISH: row.fish_supply_ui,
            Tier.DOLPHIN: row.dolphin_supply_ui,
            Tier.SHARK: row.shark_supply_ui,
            Tier.WHALE: row.whale_supply_ui,
        },
        token_name=row.token_name,
        token_symbol=row.token_symbol,
    )


def _top_holder_row(snapshot_id: int, token_address: str, holder: TopHolderRow) -> TokenTopHolder:
    return TokenTopHolder(
        snapshot_id=snapshot_id,
        token_address=token_address,
        rank=holder.rank,
        address=holder.address,
        amount_raw=str(holder.raw_amount),
        token_decimals=holder.decimals,
        balance=holder.balance,
        usd_value=holder.usd_value,
        tier=holder.tier.value if holder.tier else None,
    )


class SqlSnapshotRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, snapshot: Snapshot, top_holders: Sequence[TopHolderRow] = ()) -> int:
        """Write the snapshot and its top-holder rows in one transaction.

        Raises DedupRace (carrying the existing row id) when another writer
        already stored this (token, bucket).
        """
        async with self._session_factory() as session:
            try:
                row = snapshot_to_row(snapshot)
                session.add(row)
                await session.flush()
                snapshot_id = row.id
                session.add_all(
                    _top_holder_row(snapshot_id, snapshot.token_address, h) for h in top_holders
                )
                await session.commit()
            except IntegrityError:
                await session.rollback()
                winner = await self.find_by_bucket(snapshot.token_address, snapshot.bucket_key)
                if winner is None or winner.id is None:
                    raise
                logger.info(
                    f"[DB] Snapshot race on {snapshot.token_address} bucket "
                    f"{snapshot.bucket_key}, keeping id={winner.id}"
                )
                raise DedupRace(snapshot.token_address, snapshot.bucket_key, winner.id)

        snapshot.id = snapshot_id
        logger.debug(
            f"[DB] Snapshot {snapshot_id} for {snapshot.token_address} "
            f"({snapshot.total_holders} holders, {len(top_holders)} top rows)"
        )
        return snapshot_id

    async def _first(self, stmt) -> Snapshot | None:
        async with self._session_factory() as session:
            row = (await session.execute(stmt.limit(1))).scalar_one_or_none()
            return row_to_snapshot(row) if row is not None else None

    async def get(self, snapshot_id: int) -> Snapshot | None:
        async with self._session_factory() as session:
            row = await session.get(TokenSnapshot, snapshot_id)
            return row_to_snapshot(row) if row is not None else None

    async def find_by_bucket(self, token_address: str, bucket_key: int) -> Snapshot | None:
        return await self._first(
            select(TokenSnapshot)
            .where(
                TokenSnapshot.token_address == token_address,
                TokenSnapshot.bucket_key == bucket_key,
            )
            .order_by(TokenSnapshot.captured_at.desc())
        )

    async def find_recent(
        self, token_address: str, window_seconds: int, *, now: datetime
    ) -> Snapshot | None:
        since = now - timedelta(seconds=window_seconds)
        return await self._first(
            select(TokenSnapshot)
            .where(
                TokenSnapshot.token_address == token_address,
                TokenSnapshot.captured_at >= since,
            )
            .order_by(TokenSnapshot.captured_at.desc())
        )

    async def find_previous_before(
        self, token_address: str, timestamp: datetime
    ) -> Snapshot | None:
        return await self._first(
            select(TokenSnapshot)
            .where(
                TokenSnapshot.token_address == token_address,
                TokenSnapshot.captured_at < timestamp,
            )
            .order_by(TokenSnapshot.captured_at.desc())
        )

    async def find_latest(self, token_address: str) -> Snapshot | None:
        return await self._first(
            select(TokenSnapshot)
            .where(TokenSnapshot.token_address == token_address)
            .order_by(TokenSnapshot.captured_at.desc())
        )

    async def top_holders(self, snapshot_id: int) -> list[TopHolderRow]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(TokenTopHolder)
                    .where(TokenTopHolder.snapshot_id == snapshot_id)
                    .order_by(TokenTopHolder.rank)
                )
            ).scalars().all()
        return [
            TopHolderRow(
                rank=r.rank,
                address=r.address,
                raw_amount=int(r.amount_raw),
                decimals=r.token_decimals,
                balance=r.balance,
                usd_value=r.usd_value,
                tier=Tier(r.tier) if r.tier else None,
            )
            for r in rows
        ]

    async def update_metadata(
        self, snapshot_id: int, *, name: str | None, symbol: str | None
    ) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(TokenSnapshot)
                .where(TokenSnapshot.id == snapshot_id)
                .values(token_name=_sanitize(name), token_symbol=_sanitize(symbol))
            )
            await session.commit()
