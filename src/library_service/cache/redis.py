"""Redis connection pool management.

Two logical databases are used:
- cache: generation locks and the daily LLM budget counter
- rate_limit: Request Gate counters and the slowapi HTTP limiter
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from library_service.core.config import get_settings
from library_service.observability.logging import get_logger


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)

_cache_pool: ConnectionPool | None = None
_rate_limit_pool: ConnectionPool | None = None

_cache_client: Redis[Any] | None = None
_rate_limit_client: Redis[Any] | None = None


async def init_redis_pools() -> None:
    """Create both pools and verify connectivity.

    Should be called during application startup (lifespan).
    """
    global _cache_pool, _rate_limit_pool  # noqa: PLW0603
    global _cache_client, _rate_limit_client  # noqa: PLW0603

    settings = get_settings()

    logger.info(
        "Initializing Redis connections",
        host=settings.redis.host,
        port=settings.redis.port,
    )

    _cache_pool = ConnectionPool.from_url(
        settings.redis_cache_url,
        max_connections=settings.redis.max_connections,
        decode_responses=True,
    )
    _cache_client = redis.Redis(connection_pool=_cache_pool)

    _rate_limit_pool = ConnectionPool.from_url(
        settings.redis_rate_limit_url,
        max_connections=settings.redis.max_connections,
        decode_responses=True,
    )
    _rate_limit_client = redis.Redis(connection_pool=_rate_limit_pool)

    try:
        await _cache_client.ping()
        await _rate_limit_client.ping()
    except redis.ConnectionError:
        logger.exception("Failed to connect to Redis")
        raise
    logger.info("Redis connections established successfully")


async def close_redis_pools() -> None:
    """Close clients and disconnect pools (lifespan shutdown)."""
    global _cache_pool, _rate_limit_pool  # noqa: PLW0603
    global _cache_client, _rate_limit_client  # noqa: PLW0603

    for client in (_cache_client, _rate_limit_client):
        if client is not None:
            await client.aclose()
    for pool in (_cache_pool, _rate_limit_pool):
        if pool is not None:
            await pool.disconnect()

    _cache_client = _rate_limit_client = None
    _cache_pool = _rate_limit_pool = None
    logger.info("Redis connections closed")


def get_cache_client() -> Redis[Any]:
    """Get the Redis client for locks and the budget counter.

    Raises:
        RuntimeError: If Redis is not initialized.
    """
    if _cache_client is None:
        msg = "Redis cache client not initialized. Call init_redis_pools() first."
        raise RuntimeError(msg)
    return _cache_client


def get_rate_limit_client() -> Redis[Any]:
    """Get the Redis client for rate limiting.

    Raises:
        RuntimeError: If Redis is not initialized.
    """
    if _rate_limit_client is None:
        msg = "Redis rate limit client not initialized. Call init_redis_pools() first."
        raise RuntimeError(msg)
    return _rate_limit_client


async def _ping(client: Redis[Any] | None) -> str:
    if client is None:
        return "not_initialized"
    try:
        await client.ping()
    except redis.RedisError:
        return "unhealthy"
    return "healthy"


async def check_redis_health() -> dict[str, str]:
    """Return ``healthy``/``unhealthy``/``not_initialized`` per Redis database."""
    return {
        "redis_cache": await _ping(_cache_client),
        "redis_rate_limit": await _ping(_rate_limit_client),
    }
