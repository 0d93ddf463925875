"""Snapshot dedup: decide whether an audit request needs a fresh snapshot.

Two layers, checked in order:
1. fixed 10-minute bucket: indexed (token, bucket_key) lookup;
2. sliding 600s window: catches requests straddling a bucket boundary.

Only when both miss is a full fetch → normalize → aggregate → persist run.
The check and the later insert are serialized per token through
`SnapshotDeduper.guard`, and the repository's (token, bucket) unique
constraint turns cross-process races into an idempotent no-op.
"""

import asyncio
import math
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from loguru import logger

from holder_audit.interfaces import SnapshotRepository

DEFAULT_BUCKET_SECONDS = 600
DEFAULT_WINDOW_SECONDS = 600


class DedupState(str, Enum):
    NO_PRIOR_SNAPSHOT = "no_prior_snapshot"
    RECENT_SNAPSHOT_EXISTS = "recent_snapshot_exists"
    SNAPSHOT_REQUIRED = "snapshot_required"


@dataclass(frozen=True)
class DedupDecision:
    state: DedupState
    bucket_key: int
    snapshot_id: int | None = None
    matched_by: str | None = None  # "bucket" or "window"

    @property
    def deduped(self) -> bool:
        return self.state is DedupState.RECENT_SNAPSHOT_EXISTS

    @property
    def requires_snapshot(self) -> bool:
        return not self.deduped


def utc_now() -> datetime:
    """Naive UTC now, the timestamp convention of every stored row."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_epoch(ts: datetime) -> float:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.timestamp()


def bucket_key_for(ts: datetime, bucket_seconds: int = DEFAULT_BUCKET_SECONDS) -> int:
    return math.floor(to_epoch(ts) / bucket_seconds)


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


class SnapshotDeduper:
    def __init__(
        self,
        repository: SnapshotRepository,
        *,
        bucket_seconds: int = DEFAULT_BUCKET_SECONDS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._bucket_seconds = bucket_seconds
        self._window_seconds = window_seconds
        self._clock = clock
        self._locks = KeyedLock()

    @property
    def bucket_seconds(self) -> int:
        return self._bucket_seconds

    def guard(self, token_address: str):
        """Per-token critical section spanning check() and the snapshot insert."""
        return self._locks.acquire(token_address)

    async def check(self, token_address: str) -> DedupDecision:
        now = self._clock()
        bucket = bucket_key_for(now, self._bucket_seconds)

        existing = await self._repo.find_by_bucket(token_address, bucket)
        if existing is not None:
            logger.debug(f"[DEDUP] {token_address}: bucket {bucket} hit, snapshot {existing.id}")
            return DedupDecision(
                state=DedupState.RECENT_SNAPSHOT_EXISTS,
                bucket_key=bucket,
                snapshot_id=existing.id,
                matched_by="bucket",
            )

        recent = await self._repo.find_recent(token_address, self._window_seconds, now=now)
        if recent is not None:
            logger.debug(
                f"[DEDUP] {token_address}: window hit, snapshot {recent.id} "
                f"captured {recent.captured_at.isoformat()}"
            )
            return DedupDecision(
                state=DedupState.RECENT_SNAPSHOT_EXISTS,
                bucket_key=bucket,
                snapshot_id=recent.id,
                matched_by="window",
            )

        latest = await self._repo.find_latest(token_address)
        state = DedupState.NO_PRIOR_SNAPSHOT if latest is None else DedupState.SNAPSHOT_REQUIRED
        return DedupDecision(state=state, bucket_key=bucket)
