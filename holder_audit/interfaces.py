"""Collaborator contracts consumed by the audit engine."""

from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from holder_audit.analytics.types import (
    HolderBalance,
    HolderLabel,
    RetentionCounts,
    Snapshot,
    TokenSupply,
    TopHolderRow,
    WhaleRecord,
)


class LedgerBalanceSource(Protocol):
    async def fetch_all_holders(self, token_address: str) -> list[HolderBalance]:
        """Complete owner-deduplicated holder list, or raise FetchError."""
        ...


class SupplySource(Protocol):
    async def fetch_supply(self, token_address: str) -> TokenSupply: ...


class PriceOracle(Protocol):
    async def fetch_usd_price(self, token_address: str) -> Decimal | None:
        """None means "price unknown", not an error."""
        ...


class LabelSource(Protocol):
    async def fetch_labels(self, addresses: Sequence[str]) -> dict[str, HolderLabel]: ...


class SnapshotRepository(Protocol):
    async def insert(self, snapshot: Snapshot, top_holders: Sequence[TopHolderRow] = ()) -> int:
        """Persist atomically. Raises DedupRace when (token, bucket) already exists."""
        ...

    async def get(self, snapshot_id: int) -> Snapshot | None: ...

    async def find_by_bucket(self, token_address: str, bucket_key: int) -> Snapshot | None: ...

    async def find_recent(
        self, token_address: str, window_seconds: int, *, now: datetime
    ) -> Snapshot | None: ...

    async def find_previous_before(
        self, token_address: str, timestamp: datetime
    ) -> Snapshot | None: ...

    async def find_latest(self, token_address: str) -> Snapshot | None: ...

    async def top_holders(self, snapshot_id: int) -> list[TopHolderRow]: ...

    async def update_metadata(
        self, snapshot_id: int, *, name: str | None, symbol: str | None
    ) -> None: ...


class WhaleRepository(Protocol):
    async def upsert(self, record: WhaleRecord) -> None: ...

    async def query_by_token(self, token_address: str) -> list[WhaleRecord]: ...

    async def query_by_snapshot(
        self, token_address: str, snapshot_id: int
    ) -> list[WhaleRecord]: ...

    async def query_retention(
        self,
        token_address: str,
        snapshot_id: int,
        as_of: datetime,
        windows_days: Iterable[int],
    ) -> RetentionCounts: ...

    async def cross_token_whales(
        self, *, since: datetime, min_tokens: int
    ) -> dict[str, int]:
        """address -> number of tokens in which it was a whale since `since`."""
        ...


class LabelRepository(LabelSource, Protocol):
    async def upsert_label(
        self, address: str, type_: str, label: str, *, expires_at: datetime | None
    ) -> None: ...

    async def purge_expired(self, now: datetime) -> int: ...
