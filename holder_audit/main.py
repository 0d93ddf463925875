"""Command-line entry point.

    python -m holder_audit.main audit <mint>
    python -m holder_audit.main latest <mint>
    python -m holder_audit.main compare <mint_a> <mint_b> [<mint_c>]
    python -m holder_audit.main purge-labels
    python -m holder_audit.main init-db
"""

import argparse
import asyncio
import json
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger

from config.settings import settings
from holder_audit.analytics.dedup import SnapshotDeduper
from holder_audit.analytics.errors import HolderAuditError
from holder_audit.analytics.whale_tracker import WhaleTracker
from holder_audit.db.database import async_session_factory, create_schema, dispose_engine
from holder_audit.db.redis import close_cache_redis, connect_cache_redis
from holder_audit.interfaces import PriceOracle
from holder_audit.metrics import metrics
from holder_audit.pipeline.audit import HolderAuditService
from holder_audit.pipeline.auto_labeler import AutoLabeler
from holder_audit.sources.birdeye.client import BirdeyeClient
from holder_audit.sources.dexscreener.client import DexScreenerClient
from holder_audit.sources.helius.client import HeliusClient
from holder_audit.sources.jupiter.client import JupiterClient
from holder_audit.sources.labels import HolderLabeler, LiquidityDetector
from holder_audit.sources.price_cache import (
    CacheStore,
    InMemoryCacheStore,
    MetadataCache,
    PriceCache,
    RedisCacheStore,
)
from holder_audit.sources.price_oracle import FallbackPriceOracle
from holder_audit.storage.labels import SqlLabelRepository
from holder_audit.storage.snapshots import SqlSnapshotRepository
from holder_audit.storage.whales import SqlWhaleRepository
from holder_audit.utils.logger import setup_logger


@asynccontextmanager
async def build_service() -> AsyncIterator[tuple[HolderAuditService, AutoLabeler]]:
    """Wire clients, caches and repositories from settings; closes everything on exit."""
    helius = HeliusClient(
        settings.helius_api_key,
        settings.helius_rpc_url,
        max_rps=settings.helius_max_rps,
        page_limit=settings.holder_page_limit,
        max_pages=settings.holder_max_pages,
    )
    jupiter = JupiterClient(settings.jupiter_api_key, max_rps=settings.jupiter_max_rps)
    dexscreener = DexScreenerClient(max_rps=settings.dexscreener_max_rps)
    birdeye = (
        BirdeyeClient(settings.birdeye_api_key, max_rps=settings.birdeye_max_rps)
        if settings.birdeye_api_key
        else None
    )

    store: CacheStore = InMemoryCacheStore()
    if settings.price_cache_backend == "redis":
        redis = await connect_cache_redis()
        if redis is not None:
            store = RedisCacheStore(redis)

    price_sources: list[tuple[str, PriceOracle]] = [("jupiter", jupiter)]
    if birdeye is not None:
        price_sources.append(("birdeye", birdeye))
    price_sources.append(("dexscreener", dexscreener))
    prices = PriceCache(
        FallbackPriceOracle(price_sources), store, ttl_sec=settings.price_cache_ttl_sec
    )
    metadata = MetadataCache(
        dexscreener.get_token_metadata, store, ttl_sec=settings.metadata_cache_ttl_sec
    )

    snapshots = SqlSnapshotRepository(async_session_factory)
    whales = SqlWhaleRepository(async_session_factory)
    labels = SqlLabelRepository(async_session_factory)

    labeler = HolderLabeler(
        labels,
        LiquidityDetector(dexscreener) if settings.enable_lp_detection else None,
        excluded_types=settings.excluded_label_types,
    )
    auto_labeler = AutoLabeler(
        labels,
        whales,
        ttl_days=settings.label_ttl_days,
        protected_types=settings.excluded_label_types,
    )

    service = HolderAuditService(
        helius,
        helius,
        prices,
        snapshots,
        labeler=labeler,
        whale_tracker=(
            WhaleTracker(whales, max_concurrency=settings.max_concurrency)
            if settings.enable_whale_tracking
            else None
        ),
        auto_labeler=auto_labeler if settings.enable_auto_labels else None,
        liquidity=dexscreener.get_liquidity_usd,
        metadata=metadata.get if settings.enable_metadata_backfill else None,
        deduper=SnapshotDeduper(
            snapshots,
            bucket_seconds=settings.snapshot_bucket_sec,
            window_seconds=settings.dedup_window_sec,
        ),
        max_concurrency=settings.max_concurrency,
    )

    try:
        yield service, auto_labeler
    finally:
        await helius.close()
        await jupiter.close()
        await dexscreener.close()
        if birdeye is not None:
            await birdeye.close()
        await close_cache_redis()
        await dispose_engine()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="holder_audit", description="Solana token holder audits")
    sub = parser.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit", help="Audit one token (reuses snapshots < 10 min old)")
    audit.add_argument("mint")

    latest = sub.add_parser("latest", help="Show the latest stored audit without fetching")
    latest.add_argument("mint")

    compare = sub.add_parser("compare", help="Holder overlap of 2-3 tokens")
    compare.add_argument("mints", nargs="+")

    sub.add_parser("purge-labels", help="Delete expired wallet labels")
    sub.add_parser("init-db", help="Create missing tables from the models (local SQLite runs)")
    return parser


async def run(args: argparse.Namespace) -> int:
    if args.command == "init-db":
        try:
            await create_schema()
        finally:
            await dispose_engine()
        return 0

    async with build_service() as (service, auto_labeler):
        if args.command == "audit":
            result = await service.audit_token(args.mint)
        elif args.command == "latest":
            result = await service.latest_audit(args.mint)
            if result is None:
                logger.info(f"No stored snapshot for {args.mint}")
                return 1
        elif args.command == "compare":
            result = await service.compare_tokens(args.mints)
        else:
            result = {"purged": await auto_labeler.purge_expired()}

    print(json.dumps(result, indent=2, default=str))
    logger.debug(f"[AUDIT] {metrics.format_stats_line()}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(
        json_logs=settings.json_logs,
        level=settings.log_level,
        log_dir=settings.log_dir or None,
        retention_days=settings.log_retention_days,
    )
    try:
        return asyncio.run(run(args))
    except HolderAuditError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
