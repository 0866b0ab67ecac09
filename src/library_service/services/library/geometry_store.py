"""Geometry Store.

Books are created without locking: on a miss the geometry is computed and
inserted with insert-if-absent. If another worker inserted the same key
first, its row is read back and returned, so concurrent first requests
converge on one row at the cost of a few redundant computations.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from library_service.observability.logging import get_logger
from library_service.observability.metrics import record_book_lookup
from library_service.observability.tracing import library_span
from library_service.services.library.exceptions import PersistenceError
from library_service.services.library.keys import derive_key, normalize
from library_service.services.library.models import Book, GenerationKind


if TYPE_CHECKING:
    from collections.abc import Mapping

    from library_service.database.repositories import BookRepository
    from library_service.services.library.engines import GeometryEngineProtocol
    from library_service.services.library.models import EngineConfig, LibraryKind

logger = get_logger(__name__)


class GeometryStore:
    """Deduplicated geometry for one library."""

    def __init__(
        self,
        library: LibraryKind,
        repository: BookRepository,
        engine: GeometryEngineProtocol,
        default_config: EngineConfig,
    ) -> None:
        self.library = library
        self.default_config = default_config
        self._repo = repository
        self._engine = engine
        self._background_tasks: set[asyncio.Task[None]] = set()

    def key_for(
        self,
        raw: Mapping[str, Any],
        engine_config: EngineConfig | None = None,
    ) -> str:
        """Derive the book key for raw input.

        Raises:
            InvalidInputError: If the input cannot be normalized.
        """
        return derive_key(normalize(self.library, raw), engine_config or self.default_config)

    async def get(self, key: str) -> Book | None:
        """Look up a book by key, recording the access on a hit."""
        book = await self._repo.get(key)
        if book is not None:
            self._schedule_touch(key)
        return book

    async def get_or_compute(
        self,
        raw: Mapping[str, Any],
        engine_config: EngineConfig | None = None,
    ) -> Book:
        """Return the stored book for ``raw``, computing it on first request.

        Raises:
            InvalidInputError: Input is incomplete or malformed. Nothing is
                computed.
            ComputationFailedError: The geometry engine failed. Nothing is
                stored.
            PersistenceError: The store failed; a retry recomputes.
        """
        config = engine_config or self.default_config
        normalized = normalize(self.library, raw)
        key = derive_key(normalized, config)

        book = await self._repo.get(key)
        if book is not None:
            logger.debug("Book cache hit", book_key=key, library=self.library)
            record_book_lookup(self.library, "hit")
            self._schedule_touch(key)
            return book

        logger.info("Book cache miss, computing geometry", book_key=key, library=self.library)
        with library_span(
            "library.compute_geometry",
            library=self.library,
            book_key=key,
            kind=GenerationKind.GEOMETRY,
        ):
            geometry = await self._engine.compute_geometry(normalized, config)

        now = datetime.now(UTC)
        stored = await self._repo.insert_if_absent(
            Book(
                key=key,
                library=self.library,
                normalized_input=normalized.model_dump(mode="json"),
                geometry=geometry,
                engine_config=config.model_dump(mode="json"),
                created_at=now,
                last_accessed_at=now,
            )
        )
        if stored is not None:
            record_book_lookup(self.library, "miss")
            return stored

        # Another worker stored this key between our read and insert.
        record_book_lookup(self.library, "race")
        existing = await self._repo.get(key)
        if existing is None:
            msg = f"Book {key} vanished after an insert conflict"
            raise PersistenceError(msg)
        logger.info("Lost book insert race, using stored row", book_key=key)
        self._schedule_touch(key)
        return existing

    def _schedule_touch(self, key: str) -> None:
        task = asyncio.create_task(self._touch(key))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _touch(self, key: str) -> None:
        # Nobody awaits this task; every failure ends here.
        try:
            await self._repo.touch(key)
        except PersistenceError as e:
            logger.warning(
                "Failed to record book access",
                book_key=key,
                library=self.library,
                error=str(e.cause or e),
            )
        except Exception:
            logger.exception(
                "Unexpected error recording book access",
                book_key=key,
                library=self.library,
            )

    async def drain(self) -> None:
        """Wait for pending access updates. Called on shutdown."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
