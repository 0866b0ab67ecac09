"""Book repository.

Raw SQL over asyncpg against one library table. JSONB columns are sent and
received as JSON text (encoded with orjson).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import asyncpg
import orjson

from library_service.database.connection import get_database_pool
from library_service.observability.logging import get_logger
from library_service.services.library.constants import DEEP_DIVES_FIELD, LIBRARY_TABLES
from library_service.services.library.exceptions import PersistenceError
from library_service.services.library.models import Book, LibraryKind


if TYPE_CHECKING:
    from asyncpg import Pool, Record

logger = get_logger(__name__)

STORAGE_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
)

_COLUMNS = """
    book_key, input_json, geometry_json, engine_config, narrative_json,
    narrative_prompt_version, narrative_language, narrative_generated_at,
    created_at, last_accessed_at, access_count
"""


def _dumps(value: Any) -> str:
    return orjson.dumps(value).decode()


def _loads(value: Any) -> Any:
    if value is None or isinstance(value, dict | list):
        return value
    return orjson.loads(value)


class BookRepository:
    """Keyed insert-if-absent/select store for one library.

    Every storage failure is raised as ``PersistenceError``.
    """

    def __init__(self, library: LibraryKind, pool: Pool | None = None) -> None:
        """Initialize repository.

        Args:
            library: Which library table to use.
            pool: Optional connection pool. If None, uses global pool.
        """
        self.library = library
        self.table = LIBRARY_TABLES[library]
        self._pool = pool

    @property
    def pool(self) -> Pool:
        if self._pool is not None:
            return self._pool
        return get_database_pool()

    def _row_to_book(self, row: Record) -> Book:
        return Book(
            key=row["book_key"],
            library=self.library,
            normalized_input=_loads(row["input_json"]),
            geometry=_loads(row["geometry_json"]),
            engine_config=_loads(row["engine_config"]),
            narrative=_loads(row["narrative_json"]),
            narrative_prompt_version=row["narrative_prompt_version"],
            narrative_language=row["narrative_language"],
            narrative_generated_at=row["narrative_generated_at"],
            created_at=row["created_at"],
            last_accessed_at=row["last_accessed_at"],
            access_count=row["access_count"],
        )

    async def _fetchrow(self, query: str, *args: Any) -> Record | None:
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except STORAGE_ERRORS as e:
            logger.warning(
                "Book storage query failed",
                table=self.table,
                error_type=type(e).__name__,
            )
            raise PersistenceError(f"Storage failure on {self.table}", cause=e) from e

    async def get(self, key: str) -> Book | None:
        row = await self._fetchrow(
            f"SELECT {_COLUMNS} FROM {self.table} WHERE book_key = $1",  # noqa: S608
            key,
        )
        return None if row is None else self._row_to_book(row)

    async def insert_if_absent(self, book: Book) -> Book | None:
        """Insert a new book unless one already exists under its key.

        Returns:
            The stored book, or None if another writer stored it first.
        """
        query = f"""
            INSERT INTO {self.table} (
                book_key, input_json, geometry_json, engine_config,
                created_at, last_accessed_at, access_count
            )
            VALUES ($1, $2::jsonb, $3::jsonb, $4::jsonb, $5, $6, $7)
            ON CONFLICT (book_key) DO NOTHING
            RETURNING {_COLUMNS}
        """  # noqa: S608
        try:
            row = await self._fetchrow(
                query,
                book.key,
                _dumps(book.normalized_input),
                _dumps(book.geometry),
                _dumps(book.engine_config),
                book.created_at,
                book.last_accessed_at,
                book.access_count,
            )
        except PersistenceError as e:
            if isinstance(e.cause, asyncpg.UniqueViolationError):
                return None
            raise
        return None if row is None else self._row_to_book(row)

    async def store_narrative(
        self,
        key: str,
        narrative: dict[str, Any],
        language: str,
        prompt_version: int,
    ) -> Book | None:
        """Overwrite the narrative fields. Returns None if the book is gone."""
        query = f"""
            UPDATE {self.table}
            SET narrative_json = $2::jsonb,
                narrative_language = $3,
                narrative_prompt_version = $4,
                narrative_generated_at = now()
            WHERE book_key = $1
            RETURNING {_COLUMNS}
        """  # noqa: S608
        row = await self._fetchrow(query, key, _dumps(narrative), language, prompt_version)
        return None if row is None else self._row_to_book(row)

    async def merge_sections(
        self,
        key: str,
        sections: dict[str, dict[str, Any]],
    ) -> Book | None:
        """Merge sections into ``narrative_json->'deepDives'`` key by key.

        Sections not in ``sections`` are left as they are. Books without a
        narrative are not updated (returns None).
        """
        query = f"""
            UPDATE {self.table}
            SET narrative_json = jsonb_set(
                narrative_json,
                '{{{DEEP_DIVES_FIELD}}}',
                COALESCE(narrative_json->'{DEEP_DIVES_FIELD}', '{{}}'::jsonb) || $2::jsonb
            )
            WHERE book_key = $1 AND narrative_json IS NOT NULL
            RETURNING {_COLUMNS}
        """  # noqa: S608
        row = await self._fetchrow(query, key, _dumps(sections))
        return None if row is None else self._row_to_book(row)

    async def touch(self, key: str) -> None:
        """Record an access: bump ``access_count`` and ``last_accessed_at``."""
        query = f"""
            UPDATE {self.table}
            SET last_accessed_at = now(),
                access_count = access_count + 1
            WHERE book_key = $1
        """  # noqa: S608
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(query, key)
        except STORAGE_ERRORS as e:
            raise PersistenceError(f"Storage failure on {self.table}", cause=e) from e
