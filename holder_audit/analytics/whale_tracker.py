"""Whale persistence tracking: consecutive-day streaks and retention.

Each (token, wallet) pair that holds >= $250k moves Unseen -> Tracked(N).
A later snapshot 24-25h after last_seen extends the streak; any other gap
resets it to 1. Per-wallet failures are logged and skipped, the rest of the
batch still lands.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from loguru import logger

from holder_audit.analytics.tiers import WHALE_THRESHOLD_USD
from holder_audit.analytics.types import NormalizedHolder, WhaleRecord
from holder_audit.interfaces import WhaleRepository
from holder_audit.utils.concurrency import bounded_gather

STREAK_MIN_GAP = timedelta(days=1)
STREAK_MAX_GAP = timedelta(hours=25)  # absorbs snapshot timing jitter
RETENTION_WINDOWS_DAYS: tuple[int, ...] = (7, 30, 90)
TOP_WHALES_LIMIT = 10


@dataclass
class WhaleProcessingResult:
    whale_count: int
    processed: int
    failed: list[str] = field(default_factory=list)


@dataclass
class WhaleSummary:
    address: str
    usd_value: Decimal
    days_held: int


@dataclass
class WhaleStats:
    count: int
    retention: dict[int, int]  # window days -> percent 0..100
    top: list[WhaleSummary] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "count": self.count,
            "retention": {f"{days}d": pct for days, pct in self.retention.items()},
            "top": [
                {
                    "address": w.address,
                    "usd_value": float(w.usd_value),
                    "days_held": w.days_held,
                }
                for w in self.top
            ],
        }


def is_consecutive(last_seen: datetime | None, snapshot_time: datetime) -> bool:
    if last_seen is None:
        return False
    gap = snapshot_time - last_seen
    return STREAK_MIN_GAP <= gap <= STREAK_MAX_GAP


def advance_record(
    existing: WhaleRecord | None,
    holder: NormalizedHolder,
    *,
    token_address: str,
    snapshot_id: int,
    snapshot_time: datetime,
) -> WhaleRecord:
    """Next state of a wallet's whale record after it qualified in a snapshot."""
    usd_value = holder.usd_value if holder.usd_value is not None else Decimal("0")
    if existing is None:
        return WhaleRecord(
            address=holder.owner,
            token_address=token_address,
            first_seen=snapshot_time,
            last_seen=snapshot_time,
            consecutive_days=1,
            balance=holder.ui_amount,
            usd_value=usd_value,
            snapshot_id=snapshot_id,
        )

    days = existing.consecutive_days + 1 if is_consecutive(existing.last_seen, snapshot_time) else 1
    return WhaleRecord(
        address=existing.address,
        token_address=existing.token_address,
        first_seen=existing.first_seen,
        last_seen=snapshot_time,
        consecutive_days=days,
        balance=holder.ui_amount,
        usd_value=usd_value,
        snapshot_id=snapshot_id,
    )


def retention_percent(retained: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(retained / total * 100)


class WhaleTracker:
    def __init__(
        self,
        repository: WhaleRepository,
        *,
        threshold_usd: Decimal = WHALE_THRESHOLD_USD,
        max_concurrency: int = 4,
    ) -> None:
        self._repo = repository
        self._threshold = threshold_usd
        self._max_concurrency = max_concurrency

    def whales_of(self, holders: Iterable[NormalizedHolder]) -> list[NormalizedHolder]:
        return [
            h for h in holders
            if h.usd_value is not None and h.usd_value >= self._threshold
        ]

    async def process_snapshot(
        self,
        token_address: str,
        holders: Sequence[NormalizedHolder],
        snapshot_id: int,
        snapshot_time: datetime,
    ) -> WhaleProcessingResult:
        whales = self.whales_of(holders)
        if not whales:
            logger.debug(f"[WHALE] No whales for {token_address}")
            return WhaleProcessingResult(whale_count=0, processed=0)

        existing = {r.address: r for r in await self._repo.query_by_token(token_address)}

        async def _update_one(holder: NormalizedHolder) -> None:
            record = advance_record(
                existing.get(holder.owner),
                holder,
                token_address=token_address,
                snapshot_id=snapshot_id,
                snapshot_time=snapshot_time,
            )
            await self._repo.upsert(record)

        outcomes = await bounded_gather(
            whales, _update_one, limit=self._max_concurrency, return_exceptions=True
        )

        result = WhaleProcessingResult(whale_count=len(whales), processed=0)
        for holder, outcome in zip(whales, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    f"[WHALE] Upsert failed for {holder.owner} on {token_address}: {outcome}"
                )
                result.failed.append(holder.owner)
            else:
                result.processed += 1

        logger.info(
            f"[WHALE] {token_address}: {result.processed}/{result.whale_count} whales tracked"
            + (f", {len(result.failed)} failed" if result.failed else "")
        )
        return result

    async def get_whale_stats(
        self,
        token_address: str,
        snapshot_id: int,
        as_of: datetime,
        windows_days: Sequence[int] = RETENTION_WINDOWS_DAYS,
    ) -> WhaleStats:
        current = await self._repo.query_by_snapshot(token_address, snapshot_id)
        counts = await self._repo.query_retention(token_address, snapshot_id, as_of, windows_days)

        top = sorted(current, key=lambda r: r.usd_value, reverse=True)[:TOP_WHALES_LIMIT]
        return WhaleStats(
            count=counts.total,
            retention={
                days: retention_percent(counts.retained.get(days, 0), counts.total)
                for days in windows_days
            },
            top=[
                WhaleSummary(address=r.address, usd_value=r.usd_value, days_held=r.consecutive_days)
                for r in top
            ],
        )
