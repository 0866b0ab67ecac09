"""Integration test fixtures.

Provides real Redis and PostgreSQL via testcontainers. Each test gets an
empty Redis database and empty library tables.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import asyncpg
import pytest
from redis.asyncio import Redis
from testcontainers.postgres import PostgresContainer
from testcontainers.redis import RedisContainer

from library_service.database.schema import ensure_schema
from library_service.services.library.constants import LIBRARY_TABLES


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Generator

    from asyncpg import Pool


pytestmark = pytest.mark.integration


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer]:
    """Start a Redis container for the test session."""
    with RedisContainer("redis:7-alpine") as redis:
        yield redis


@pytest.fixture(scope="session")
def redis_url(redis_container: RedisContainer) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}"


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer]:
    """Start a PostgreSQL container for the test session."""
    with PostgresContainer("postgres:16-alpine") as postgres:
        yield postgres


@pytest.fixture(scope="session")
def postgres_dsn(postgres_container: PostgresContainer) -> str:
    host = postgres_container.get_container_host_ip()
    port = postgres_container.get_exposed_port(5432)
    return (
        f"postgresql://{postgres_container.username}:{postgres_container.password}"
        f"@{host}:{port}/{postgres_container.dbname}"
    )


@pytest.fixture
async def redis_client(redis_url: str) -> AsyncGenerator[Redis]:
    """Redis client on a flushed database."""
    client: Redis = Redis.from_url(redis_url, decode_responses=True)
    await client.flushdb()
    try:
        yield client
    finally:
        await client.aclose()


@pytest.fixture
async def db_pool(postgres_dsn: str) -> AsyncGenerator[Pool]:
    """Connection pool over freshly truncated library tables."""
    pool = await asyncpg.create_pool(postgres_dsn, min_size=1, max_size=10)
    await ensure_schema(pool)
    async with pool.acquire() as conn:
        for table in LIBRARY_TABLES.values():
            await conn.execute(f"TRUNCATE {table}")
    try:
        yield pool
    finally:
        await pool.close()
