"""Holder audit service: single-token audits, cached reads and 2-3 token compares.

Audit flow per token:
  validate -> dedup check (per-token lock held through insert)
  -> supply, holders, price (any required failure aborts, nothing persisted)
  -> labels + CEX/LP exclusion -> normalize -> aggregate
  -> persist snapshot + top holders in one transaction
  -> deltas, whale tracking, auto labels, metadata backfill (all degrade on failure)
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from loguru import logger

from holder_audit.analytics.aggregation import (
    HolderAggregates,
    aggregate,
    aggregates_from_snapshot,
    is_eligible,
    rank_holders,
    top_holder_rows,
)
from holder_audit.analytics.dedup import SnapshotDeduper, bucket_key_for, utc_now
from holder_audit.analytics.deltas import compute_deltas
from holder_audit.analytics.errors import (
    DedupRace,
    FetchError,
    HolderAuditError,
    InvalidInputError,
    PartialEnrichmentFailure,
)
from holder_audit.analytics.normalizer import normalize_holders, normalize_supply
from holder_audit.analytics.overlap import find_overlaps, group_tokens, summarize_group
from holder_audit.analytics.tiers import WHALE_THRESHOLD_USD, Tier
from holder_audit.analytics.types import (
    HolderBalance,
    HolderLabel,
    NormalizedHolder,
    Snapshot,
    TopHolderRow,
)
from holder_audit.analytics.whale_tracker import WhaleStats, WhaleTracker
from holder_audit.interfaces import (
    LedgerBalanceSource,
    PriceOracle,
    SnapshotRepository,
    SupplySource,
)
from holder_audit.metrics import AuditMetrics
from holder_audit.metrics import metrics as default_metrics
from holder_audit.pipeline.auto_labeler import AutoLabeler
from holder_audit.pipeline.formatter import (
    format_audit_payload,
    format_compare_payload,
    format_data_age,
    format_deduped,
    format_notable_holders,
    select_notable_holders,
)
from holder_audit.sources.dexscreener.models import TokenMetadata
from holder_audit.sources.labels import HolderLabeler, filter_excluded_holders
from holder_audit.utils.concurrency import bounded_gather
from holder_audit.utils.validation import validate_compare_mints, validate_mint_address

LiquidityLookup = Callable[[str], Awaitable[Decimal | None]]
MetadataLookup = Callable[[str], Awaitable[TokenMetadata]]


@dataclass
class TokenFetch:
    """Required-path inputs of one token, fetched before anything is persisted."""

    mint: str
    decimals: int
    total_supply_ui: Decimal
    balances: list[HolderBalance]
    price_usd: Decimal | None


@dataclass
class WhaleOutcome:
    stats: WhaleStats | None = None
    pending: bool = False


class HolderAuditService:
    def __init__(
        self,
        ledger: LedgerBalanceSource,
        supply: SupplySource,
        prices: PriceOracle,
        snapshots: SnapshotRepository,
        *,
        labeler: HolderLabeler | None = None,
        whale_tracker: WhaleTracker | None = None,
        auto_labeler: AutoLabeler | None = None,
        liquidity: LiquidityLookup | None = None,
        metadata: MetadataLookup | None = None,
        deduper: SnapshotDeduper | None = None,
        metrics: AuditMetrics | None = None,
        max_concurrency: int = 8,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ledger = ledger
        self._supply = supply
        self._prices = prices
        self._snapshots = snapshots
        self._labeler = labeler
        self._whales = whale_tracker
        self._auto_labeler = auto_labeler
        self._liquidity = liquidity
        self._metadata = metadata
        self._clock = clock
        self._deduper = deduper or SnapshotDeduper(snapshots, clock=clock)
        self._metrics = metrics or default_metrics
        self._max_concurrency = max_concurrency

    # -- shared fetch / label helpers ------------------------------------------------

    async def _fetch_token(self, mint: str) -> TokenFetch:
        supply = await self._supply.fetch_supply(mint)
        balances = await self._ledger.fetch_all_holders(mint)
        price = await self._prices.fetch_usd_price(mint)
        return TokenFetch(
            mint=mint,
            decimals=supply.decimals,
            total_supply_ui=normalize_supply(supply),
            balances=balances,
            price_usd=price,
        )

    async def _labels_for(self, mint: str, owners: Sequence[str]) -> dict[str, HolderLabel]:
        if self._labeler is None:
            return {}
        try:
            return await self._labeler.labels_for(mint, owners)
        except Exception as e:
            logger.warning(f"[LABELS] Label lookup failed for {mint}, continuing unlabeled: {e}")
            return {}

    def _filter_excluded(
        self, balances: list[HolderBalance], labels: dict[str, HolderLabel]
    ) -> list[HolderBalance]:
        if self._labeler is not None:
            return self._labeler.filter_excluded(balances, labels)
        return filter_excluded_holders(balances, labels)

    # -- single-token audit ----------------------------------------------------------

    async def audit_token(self, mint: str) -> dict[str, Any]:
        """Audit one token, reusing any snapshot taken in the last 10 minutes."""
        mint = validate_mint_address(mint)
        started = time.monotonic()
        try:
            async with self._deduper.guard(mint):
                decision = await self._deduper.check(mint)
                if decision.deduped:
                    self._metrics.record_run(
                        "audit", (time.monotonic() - started) * 1000, deduped=True
                    )
                    return format_deduped(decision, decision.snapshot_id)

                fetched = await self._fetch_token(mint)
                holders, aggregates, labels = await self._prepare(fetched)
                snapshot = self._new_snapshot(fetched, aggregates)
                top_rows = top_holder_rows(holders)
                try:
                    snapshot_id = await self._snapshots.insert(snapshot, top_rows)
                except DedupRace as race:
                    self._metrics.record_run(
                        "audit", (time.monotonic() - started) * 1000, deduped=True
                    )
                    return format_deduped(None, race.winner_id)
        except HolderAuditError as e:
            self._metrics.record_failure("audit", e.source if isinstance(e, FetchError) else None)
            logger.warning(f"[AUDIT] {mint} failed: {e}")
            raise

        logger.info(
            f"[AUDIT] {mint}: snapshot {snapshot_id}, {aggregates.total_holders} holders, "
            f"{aggregates.eligible_holders} eligible, price={fetched.price_usd}"
        )

        payload = await self._enrich_and_format(
            fetched, snapshot, holders, aggregates, top_rows, labels
        )
        self._metrics.record_run("audit", (time.monotonic() - started) * 1000)
        return payload

    async def _prepare(
        self, fetched: TokenFetch
    ) -> tuple[list[NormalizedHolder], HolderAggregates, dict[str, HolderLabel]]:
        owners = [b.owner for b in fetched.balances]
        labels = await self._labels_for(fetched.mint, owners)
        analyzable = self._filter_excluded(fetched.balances, labels)
        holders = normalize_holders(analyzable, fetched.decimals, fetched.price_usd)
        aggregates = aggregate(
            holders,
            total_supply_ui=fetched.total_supply_ui,
            price_usd=fetched.price_usd,
            total_holders=len(fetched.balances),
        )
        return holders, aggregates, labels

    def _new_snapshot(self, fetched: TokenFetch, aggregates: HolderAggregates) -> Snapshot:
        captured_at = self._clock()
        return Snapshot(
            token_address=fetched.mint,
            captured_at=captured_at,
            bucket_key=bucket_key_for(captured_at, self._deduper.bucket_seconds),
            price_usd=fetched.price_usd,
            total_holders=aggregates.total_holders,
            tier_counts=dict(aggregates.tier_counts),
            top_n_balances=dict(aggregates.top_n_balances),
            total_supply_ui=fetched.total_supply_ui,
            tier_supply_ui=dict(aggregates.tier_supply_ui),
        )

    async def _enrich_and_format(
        self,
        fetched: TokenFetch,
        snapshot: Snapshot,
        holders: list[NormalizedHolder],
        aggregates: HolderAggregates,
        top_rows: list[TopHolderRow],
        labels: dict[str, HolderLabel],
    ) -> dict[str, Any]:
        mint = fetched.mint
        previous, previous_rows = await self._previous_state(mint, snapshot)
        deltas = compute_deltas(aggregates, previous, fetched.total_supply_ui)

        whales = WhaleOutcome()
        if fetched.price_usd is not None and holders:
            try:
                whales = await self._track_whales(mint, holders, snapshot)
            except PartialEnrichmentFailure as e:
                logger.warning(f"[AUDIT] {e}")
                self._metrics.record_enrichment_failure("audit")
                whales = WhaleOutcome(pending=True)

        try:
            await self._auto_label(mint, snapshot, top_rows)
        except PartialEnrichmentFailure as e:
            logger.warning(f"[AUDIT] {e}")
            self._metrics.record_enrichment_failure("audit")

        liquidity, _ = await asyncio.gather(
            self._lookup_liquidity(mint), self._backfill_metadata(snapshot)
        )

        ranked = rank_holders(holders)
        candidates = select_notable_holders(top_holder_rows(ranked, keep_top=len(ranked)), labels)
        return format_audit_payload(
            mint=mint,
            decimals=fetched.decimals,
            aggregates=aggregates,
            snapshot=snapshot,
            liquidity_usd=liquidity,
            deltas=deltas,
            notable_holders=format_notable_holders(
                candidates, labels, fetched.total_supply_ui, previous_rows
            ),
            whales_detected=[
                h.owner for h in ranked
                if h.usd_value is not None and h.usd_value >= WHALE_THRESHOLD_USD
            ],
            whale_stats=whales.stats,
            whale_stats_pending=whales.pending,
        )

    async def _previous_state(
        self, mint: str, snapshot: Snapshot
    ) -> tuple[Snapshot | None, list[TopHolderRow] | None]:
        """Snapshot before this one and its top holders; (None, None) when the store fails."""
        try:
            previous = await self._snapshots.find_previous_before(mint, snapshot.captured_at)
            if previous is None or previous.id is None:
                return previous, None
            return previous, await self._snapshots.top_holders(previous.id)
        except Exception as e:
            logger.warning(f"[AUDIT] Previous snapshot lookup failed for {mint}: {e}")
            self._metrics.record_enrichment_failure("audit")
            return None, None

    async def _track_whales(
        self, mint: str, holders: list[NormalizedHolder], snapshot: Snapshot
    ) -> WhaleOutcome:
        if self._whales is None or snapshot.id is None:
            return WhaleOutcome()
        try:
            result = await self._whales.process_snapshot(
                mint, holders, snapshot.id, snapshot.captured_at
            )
            stats = await self._whales.get_whale_stats(mint, snapshot.id, snapshot.captured_at)
        except Exception as e:
            raise PartialEnrichmentFailure("whale_tracking", snapshot.id, e) from e
        return WhaleOutcome(stats=stats, pending=bool(result.failed))

    async def _auto_label(
        self, mint: str, snapshot: Snapshot, top_rows: list[TopHolderRow]
    ) -> None:
        if self._auto_labeler is None or snapshot.id is None:
            return
        try:
            await self._auto_labeler.label_snapshot(mint, top_rows)
        except Exception as e:
            raise PartialEnrichmentFailure("auto_labels", snapshot.id, e) from e

    async def _lookup_liquidity(self, mint: str) -> Decimal | None:
        if self._liquidity is None:
            return None
        try:
            return await self._liquidity(mint)
        except Exception as e:
            logger.debug(f"[AUDIT] Liquidity lookup failed for {mint}: {e}")
            return None

    async def _backfill_metadata(self, snapshot: Snapshot) -> None:
        """Name/symbol onto the stored snapshot; aggregates are never touched."""
        if self._metadata is None or snapshot.id is None:
            return
        try:
            meta = await self._metadata(snapshot.token_address)
            if not (meta.name or meta.symbol):
                return
            await self._snapshots.update_metadata(snapshot.id, name=meta.name, symbol=meta.symbol)
        except Exception as e:
            logger.debug(f"[AUDIT] Metadata backfill failed for snapshot {snapshot.id}: {e}")
            return
        snapshot.token_name = meta.name
        snapshot.token_symbol = meta.symbol

    # -- cached read -----------------------------------------------------------------

    async def latest_audit(self, mint: str) -> dict[str, Any] | None:
        """Most recent stored snapshot as an audit payload, with its data age. No fetches."""
        mint = validate_mint_address(mint)
        snapshot = await self._snapshots.find_latest(mint)
        if snapshot is None or snapshot.id is None:
            return None

        aggregates = aggregates_from_snapshot(snapshot)
        rows = await self._snapshots.top_holders(snapshot.id)
        previous, previous_rows = await self._previous_state(mint, snapshot)
        deltas = compute_deltas(aggregates, previous, snapshot.total_supply_ui)
        labels = await self._labels_for(mint, [r.address for r in rows])

        whales = WhaleOutcome()
        if self._whales is not None and snapshot.price_usd is not None:
            try:
                whales = WhaleOutcome(
                    stats=await self._whales.get_whale_stats(mint, snapshot.id, snapshot.captured_at)
                )
            except Exception as e:
                logger.warning(f"[AUDIT] Whale stats unavailable for snapshot {snapshot.id}: {e}")
                whales = WhaleOutcome(pending=True)

        return format_audit_payload(
            mint=mint,
            decimals=rows[0].decimals if rows else None,
            aggregates=aggregates,
            snapshot=snapshot,
            liquidity_usd=await self._lookup_liquidity(mint),
            deltas=deltas,
            notable_holders=format_notable_holders(
                select_notable_holders(rows, labels), labels, snapshot.total_supply_ui, previous_rows
            ),
            whales_detected=[r.address for r in rows if r.tier is Tier.WHALE],
            whale_stats=whales.stats,
            whale_stats_pending=whales.pending,
            created=False,
            data_age=format_data_age(snapshot.captured_at, self._clock()),
        )

    # -- multi-token compare ---------------------------------------------------------

    async def compare_tokens(self, mints: Sequence[str]) -> dict[str, Any]:
        """Holder overlap of 2-3 tokens. Every token must have a USD price."""
        mints = validate_compare_mints(mints)
        started = time.monotonic()

        async def _load(mint: str) -> TokenFetch:
            fetched = await self._fetch_token(mint)
            if fetched.price_usd is None:
                raise InvalidInputError(
                    f"Price not available for token {mint}. "
                    "Comparison requires price data for all tokens."
                )
            return fetched

        try:
            fetches: list[TokenFetch] = await bounded_gather(
                mints, _load, limit=self._max_concurrency
            )
        except HolderAuditError as e:
            self._metrics.record_failure("compare", e.source if isinstance(e, FetchError) else None)
            logger.warning(f"[AUDIT] Compare {', '.join(mints)} failed: {e}")
            raise

        async def _eligible(fetched: TokenFetch) -> tuple[dict[str, NormalizedHolder], dict]:
            labels = await self._labels_for(fetched.mint, [b.owner for b in fetched.balances])
            analyzable = self._filter_excluded(fetched.balances, labels)
            holders = normalize_holders(analyzable, fetched.decimals, fetched.price_usd)
            return {h.owner: h for h in holders if is_eligible(h)}, labels

        prepared = await bounded_gather(fetches, _eligible, limit=self._max_concurrency)
        token_maps = {f.mint: holder_map for f, (holder_map, _) in zip(fetches, prepared)}
        labels: dict[str, HolderLabel] = {}
        for _, token_labels in prepared:
            labels.update(token_labels)

        groups = find_overlaps(token_maps, {f.mint: f.price_usd for f in fetches})
        supplies = {f.mint: f.total_supply_ui for f in fetches}
        summaries = {
            key: summarize_group(
                entries, group_tokens(key, mints), labels=labels, supplies=supplies
            )
            for key, entries in groups.items()
        }

        self._metrics.record_run("compare", (time.monotonic() - started) * 1000)
        logger.info(
            f"[AUDIT] Compare {', '.join(mints)}: "
            + ", ".join(f"{key}={s.wallet_count}" for key, s in summaries.items())
        )
        return format_compare_payload(mints, summaries)
