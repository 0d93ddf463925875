"""Auto-labeling after each snapshot.

Top-10 holders, whale/shark holders and cross-token whales get expiring
labels. Manually curated labels of a protected type (exchanges, pools) are
never overwritten.
"""

from collections.abc import Callable, Collection, Sequence
from datetime import datetime, timedelta

from loguru import logger

from holder_audit.analytics.dedup import utc_now
from holder_audit.analytics.tiers import Tier
from holder_audit.analytics.types import TopHolderRow
from holder_audit.interfaces import LabelRepository, WhaleRepository
from holder_audit.sources.labels import DEFAULT_EXCLUDED_TYPES

TOP_HOLDER_RANKS = 10
CROSS_TOKEN_MIN_TOKENS = 3
CROSS_TOKEN_WINDOW = timedelta(days=30)


def short_mint(mint: str) -> str:
    return f"{mint[:4]}...{mint[-4:]}"


class AutoLabeler:
    def __init__(
        self,
        labels: LabelRepository,
        whales: WhaleRepository | None = None,
        *,
        ttl_days: int = 30,
        protected_types: Collection[str] = DEFAULT_EXCLUDED_TYPES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._labels = labels
        self._whales = whales
        self._ttl = timedelta(days=ttl_days)
        self._protected = frozenset(protected_types)
        self._clock = clock

    def _planned_labels(
        self, token_address: str, top_holders: Sequence[TopHolderRow]
    ) -> dict[str, tuple[str, str]]:
        """address -> (type, label); whale/shark overrides a top-holder label."""
        token = short_mint(token_address)
        planned: dict[str, tuple[str, str]] = {}
        for row in top_holders:
            if row.rank <= TOP_HOLDER_RANKS:
                planned[row.address] = ("TopHolder", f"Top {row.rank} ${token}")
        for row in top_holders:
            if row.tier in (Tier.WHALE, Tier.SHARK):
                kind = row.tier.value.capitalize()
                planned[row.address] = (kind, f"{kind} in ${token}")
        return planned

    async def label_snapshot(
        self, token_address: str, top_holders: Sequence[TopHolderRow]
    ) -> int:
        """Write labels for one snapshot's top holders plus cross-token whales."""
        now = self._clock()
        expires_at = now + self._ttl
        planned = self._planned_labels(token_address, top_holders)

        if self._whales is not None:
            cross = await self._whales.cross_token_whales(
                since=now - CROSS_TOKEN_WINDOW, min_tokens=CROSS_TOKEN_MIN_TOKENS
            )
            for address, token_count in cross.items():
                planned[address] = ("CrossTokenWhale", f"Cross-Token Whale ({token_count} tokens)")

        if not planned:
            return 0

        existing = await self._labels.fetch_labels(list(planned))
        written = 0
        for address, (type_, label) in planned.items():
            current = existing.get(address)
            if current is not None and current.type in self._protected:
                continue
            await self._labels.upsert_label(address, type_, label, expires_at=expires_at)
            written += 1

        logger.debug(f"[LABELS] {token_address}: {written} auto labels written")
        return written

    async def purge_expired(self) -> int:
        return await self._labels.purge_expired(self._clock())
