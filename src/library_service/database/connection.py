"""PostgreSQL connection pool management (asyncpg)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import asyncpg

from library_service.core.config import get_settings
from library_service.database.schema import ensure_schema
from library_service.observability.logging import get_logger


if TYPE_CHECKING:
    from asyncpg import Pool

logger = get_logger(__name__)

_pool: Pool | None = None


async def init_database_pool() -> None:
    """Create the pool, verify it, and apply the library schema if configured.

    Should be called during application startup (lifespan).
    """
    global _pool  # noqa: PLW0603

    db = get_settings().database

    logger.info(
        "Initializing database connection pool",
        host=db.host,
        port=db.port,
        database=db.name,
    )

    _pool = await asyncpg.create_pool(
        host=db.host,
        port=db.port,
        database=db.name,
        user=db.user,
        password=get_settings().DATABASE_PASSWORD or None,
        min_size=db.min_pool_size,
        max_size=db.max_pool_size,
        command_timeout=db.command_timeout,
        ssl=db.ssl if db.ssl else None,
    )

    try:
        async with _pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except asyncpg.PostgresError:
        logger.exception("Failed to connect to database")
        raise
    logger.info("Database connection established successfully")

    if db.create_schema:
        await ensure_schema(_pool)


async def close_database_pool() -> None:
    """Close the pool (lifespan shutdown)."""
    global _pool  # noqa: PLW0603

    if _pool:
        await _pool.close()
        _pool = None

    logger.info("Database connection pool closed")


def get_database_pool() -> Pool:
    """Get the database connection pool.

    Raises:
        RuntimeError: If pool is not initialized.
    """
    if _pool is None:
        msg = "Database pool not initialized. Call init_database_pool() first."
        raise RuntimeError(msg)
    return _pool


async def check_database_health() -> dict[str, str]:
    """Check health of database connection."""
    if _pool is None:
        return {"database": "not_initialized"}
    try:
        async with _pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError):
        return {"database": "unhealthy"}
    return {"database": "healthy"}
