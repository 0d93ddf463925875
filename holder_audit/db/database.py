from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings
from holder_audit.models import Base


def build_engine(url: str | None = None) -> AsyncEngine:
    """Async engine for the audit store. SQLite URLs skip the pool options."""
    url = url or settings.database_url
    options: dict[str, Any] = {}
    if not url.startswith("sqlite"):
        options = {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }
    return create_async_engine(url, echo=settings.db_echo, **options)


engine: AsyncEngine = build_engine()

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_schema() -> None:
    """Create missing tables directly from the models (local SQLite runs).

    PostgreSQL deployments use the alembic revisions instead.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"[DB] Schema ready ({len(Base.metadata.tables)} tables)")


async def dispose_engine() -> None:
    await engine.dispose()
