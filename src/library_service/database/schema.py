"""DDL for the library tables.

One table per library. Rows are created once and never deleted here;
rows for retired engine versions simply stop being looked up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from library_service.observability.logging import get_logger
from library_service.services.library.constants import LIBRARY_TABLES


if TYPE_CHECKING:
    from asyncpg import Pool

logger = get_logger(__name__)


_BOOK_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS {table} (
        book_key                 TEXT PRIMARY KEY,
        input_json               JSONB NOT NULL,
        geometry_json            JSONB NOT NULL,
        engine_config            JSONB NOT NULL,
        narrative_json           JSONB,
        narrative_prompt_version INTEGER,
        narrative_language       TEXT,
        narrative_generated_at   TIMESTAMPTZ,
        created_at               TIMESTAMPTZ NOT NULL DEFAULT now(),
        last_accessed_at         TIMESTAMPTZ NOT NULL DEFAULT now(),
        access_count             INTEGER NOT NULL DEFAULT 1
    );
    CREATE INDEX IF NOT EXISTS {table}_last_accessed_idx
        ON {table} (last_accessed_at);
"""


def book_table_ddl(table: str) -> str:
    return _BOOK_TABLE_DDL.format(table=table)


async def ensure_schema(pool: Pool) -> None:
    """Create the library tables if they do not exist."""
    async with pool.acquire() as conn:
        for table in LIBRARY_TABLES.values():
            await conn.execute(book_table_ddl(table))
    logger.info("Library schema ensured", tables=sorted(LIBRARY_TABLES.values()))
