"""In-process repositories for single-node runs and tests.

Same contracts as the SQL repositories, including the (token, bucket)
uniqueness that turns a lost insert race into DedupRace.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta

from holder_audit.analytics.dedup import utc_now
from holder_audit.analytics.errors import DedupRace
from holder_audit.analytics.types import (
    HolderLabel,
    RetentionCounts,
    Snapshot,
    TopHolderRow,
    WhaleRecord,
)


class InMemorySnapshotRepository:
    def __init__(self) -> None:
        self._rows: dict[int, Snapshot] = {}
        self._top_holders: dict[int, list[TopHolderRow]] = {}
        self._by_bucket: dict[tuple[str, int], int] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._rows)

    async def insert(self, snapshot: Snapshot, top_holders: Sequence[TopHolderRow] = ()) -> int:
        key = (snapshot.token_address, snapshot.bucket_key)
        if key in self._by_bucket:
            raise DedupRace(snapshot.token_address, snapshot.bucket_key, self._by_bucket[key])

        snapshot_id = self._next_id
        self._next_id += 1
        self._rows[snapshot_id] = replace(snapshot, id=snapshot_id)
        self._top_holders[snapshot_id] = sorted(top_holders, key=lambda r: r.rank)
        self._by_bucket[key] = snapshot_id
        snapshot.id = snapshot_id
        return snapshot_id

    def _for_token(self, token_address: str) -> list[Snapshot]:
        rows = [s for s in self._rows.values() if s.token_address == token_address]
        return sorted(rows, key=lambda s: (s.captured_at, s.id or 0), reverse=True)

    async def get(self, snapshot_id: int) -> Snapshot | None:
        return self._rows.get(snapshot_id)

    async def find_by_bucket(self, token_address: str, bucket_key: int) -> Snapshot | None:
        snapshot_id = self._by_bucket.get((token_address, bucket_key))
        return self._rows.get(snapshot_id) if snapshot_id is not None else None

    async def find_recent(
        self, token_address: str, window_seconds: int, *, now: datetime
    ) -> Snapshot | None:
        since = now - timedelta(seconds=window_seconds)
        return next((s for s in self._for_token(token_address) if s.captured_at >= since), None)

    async def find_previous_before(
        self, token_address: str, timestamp: datetime
    ) -> Snapshot | None:
        return next((s for s in self._for_token(token_address) if s.captured_at < timestamp), None)

    async def find_latest(self, token_address: str) -> Snapshot | None:
        rows = self._for_token(token_address)
        return rows[0] if rows else None

    async def top_holders(self, snapshot_id: int) -> list[TopHolderRow]:
        return list(self._top_holders.get(snapshot_id, []))

    async def update_metadata(
        self, snapshot_id: int, *, name: str | None, symbol: str | None
    ) -> None:
        row = self._rows.get(snapshot_id)
        if row is not None:
            self._rows[snapshot_id] = replace(row, token_name=name, token_symbol=symbol)


class InMemoryWhaleRepository:
    def __init__(self) -> None:
        self._records: dict[tuple[str, str], WhaleRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def upsert(self, record: WhaleRecord) -> None:
        self._records[(record.token_address, record.address)] = replace(record)

    async def query_by_token(self, token_address: str) -> list[WhaleRecord]:
        return [r for (token, _), r in self._records.items() if token == token_address]

    async def query_by_snapshot(self, token_address: str, snapshot_id: int) -> list[WhaleRecord]:
        rows = [
            r for r in await self.query_by_token(token_address)
            if r.snapshot_id == snapshot_id
        ]
        return sorted(rows, key=lambda r: r.usd_value, reverse=True)

    async def query_retention(
        self,
        token_address: str,
        snapshot_id: int,
        as_of: datetime,
        windows_days: Iterable[int],
    ) -> RetentionCounts:
        current = await self.query_by_snapshot(token_address, snapshot_id)
        retained = {
            days: sum(1 for r in current if r.last_seen >= as_of - timedelta(days=days))
            for days in windows_days
        }
        return RetentionCounts(total=len(current), retained=retained)

    async def cross_token_whales(self, *, since: datetime, min_tokens: int) -> dict[str, int]:
        tokens_by_address: dict[str, set[str]] = {}
        for (token, address), record in self._records.items():
            if record.last_seen >= since:
                tokens_by_address.setdefault(address, set()).add(token)
        return {
            address: len(tokens)
            for address, tokens in tokens_by_address.items()
            if len(tokens) >= min_tokens
        }


class InMemoryLabelRepository:
    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._labels: dict[str, tuple[HolderLabel, datetime | None]] = {}

    def __len__(self) -> int:
        return len(self._labels)

    async def fetch_labels(self, addresses: Sequence[str]) -> dict[str, HolderLabel]:
        now = self._clock()
        result: dict[str, HolderLabel] = {}
        for address in addresses:
            entry = self._labels.get(address)
            if entry is None:
                continue
            label, expires_at = entry
            if expires_at is None or expires_at > now:
                result[address] = label
        return result

    async def upsert_label(
        self, address: str, type_: str, label: str, *, expires_at: datetime | None
    ) -> None:
        self._labels[address] = (HolderLabel(type=type_, label=label), expires_at)

    async def purge_expired(self, now: datetime) -> int:
        expired = [
            address for address, (_, expires_at) in self._labels.items()
            if expires_at is not None and expires_at < now
        ]
        for address in expired:
            del self._labels[address]
        return len(expired)
