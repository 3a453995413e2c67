"""Async database engine and schema setup."""

from functools import lru_cache
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from mibuks.config.settings import get_settings


@lru_cache
def get_engine() -> AsyncEngine:
    """Return a cached async database engine (singleton per process)."""
    settings = get_settings()
    options: dict[str, Any] = {"echo": settings.debug}
    if not settings.database_url.startswith("sqlite"):
        options.update(pool_size=5, max_overflow=10, pool_pre_ping=True, pool_recycle=3600)
    return create_async_engine(settings.database_url, **options)


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables that do not exist yet."""
    import mibuks.models.database  # noqa: F401  (registers table metadata)

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
