"""Library service.

The two operations callers use: ``get_or_compute_book`` for geometry only,
and ``get_book_with_narrative`` which adds a cached or freshly generated
narrative. One instance serves one library.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from library_service.observability.logging import get_logger
from library_service.observability.metrics import record_narrative_request
from library_service.services.library.exceptions import CapacityError
from library_service.services.library.models import BookWithNarrative
from library_service.services.library.narrative_cache import is_valid, stale_sections


if TYPE_CHECKING:
    from collections.abc import Mapping

    from library_service.services.library.geometry_store import GeometryStore
    from library_service.services.library.models import (
        Book,
        EngineConfig,
        LibraryKind,
        PersonalizationContext,
    )
    from library_service.services.library.narrative_cache import NarrativeCache
    from library_service.services.library.request_gate import RequestGate

logger = get_logger(__name__)


class LibraryService:
    """Geometry and narrative lookups for one library.

    Example:
        ```python
        service = app.state.libraries[LibraryKind.CHART]
        result = await service.get_book_with_narrative(
            raw, language="en", caller_id="user:42"
        )
        if not result.narrative_available:
            ...  # serve geometry only
        ```
    """

    def __init__(
        self,
        store: GeometryStore,
        narratives: NarrativeCache,
        gate: RequestGate,
        *,
        default_language: str = "en",
    ) -> None:
        self.store = store
        self.narratives = narratives
        self._gate = gate
        self._default_language = default_language

    @property
    def library(self) -> LibraryKind:
        return self.store.library

    @property
    def operation(self) -> str:
        """Request Gate operation name for this library's generations."""
        return f"{self.library}_narrative"

    async def get_or_compute_book(
        self,
        raw: Mapping[str, Any],
        engine_config: EngineConfig | None = None,
    ) -> Book:
        """Return the book for ``raw``, computing its geometry if needed.

        Raises:
            InvalidInputError: Input is incomplete or malformed.
            ComputationFailedError: The geometry engine failed.
            PersistenceError: The store failed.
        """
        return await self.store.get_or_compute(raw, engine_config)

    async def get_book(self, key: str) -> Book | None:
        return await self.store.get(key)

    async def get_book_with_narrative(
        self,
        raw: Mapping[str, Any],
        engine_config: EngineConfig | None = None,
        language: str | None = None,
        prompt_version: int | None = None,
        context: PersonalizationContext | None = None,
        *,
        caller_id: str,
        include_sections: bool = False,
    ) -> BookWithNarrative:
        """Return the book with a narrative valid for ``language`` if possible.

        Cache hits never touch the Request Gate. A failed generation is not
        an error: the result has ``narrative_available=False`` and the
        geometry is still returned.

        Raises:
            InvalidInputError: Input is incomplete or malformed.
            ComputationFailedError: The geometry engine failed.
            PersistenceError: The store failed while loading geometry.
            RateLimitedError: The caller hit a Request Gate limit.
            BudgetExceededError: Today's LLM budget is spent.
            LockUnavailableError: Generation is in progress elsewhere, or the
                lock/counter store is down.
        """
        language = language or self._default_language
        version = (
            prompt_version if prompt_version is not None else self.narratives.prompt_version
        )
        book = await self.store.get_or_compute(raw, engine_config)

        narrative_miss = not is_valid(book, language, version)
        sections_wanted = include_sections and self.narratives.supports_sections
        sections_stale = sections_wanted and bool(
            narrative_miss or stale_sections(book, self.narratives.section_prompt_version)
        )

        if not narrative_miss and not sections_stale:
            record_narrative_request(self.library, "hit")
            return BookWithNarrative(book=book, narrative_available=True)

        try:
            await self._gate.check(caller_id, self.operation)
            if narrative_miss:
                book = await self.narratives.ensure_narrative(
                    book, language, context, prompt_version=version
                )
        except CapacityError as e:
            if not narrative_miss:
                logger.info(
                    "Deep-dive generation deferred",
                    book_key=book.key,
                    code=e.code,
                    retry_after=e.retry_after,
                )
                return BookWithNarrative(book=book, narrative_available=True)
            record_narrative_request(self.library, "rejected")
            logger.info(
                "Narrative generation refused",
                book_key=book.key,
                library=self.library,
                code=e.code,
                retry_after=e.retry_after,
            )
            raise

        available = is_valid(book, language, version)
        if available and sections_stale:
            book = await self._ensure_sections(book, language, context, version)
        return BookWithNarrative(book=book, narrative_available=available)

    async def _ensure_sections(
        self,
        book: Book,
        language: str,
        context: PersonalizationContext | None,
        prompt_version: int,
    ) -> Book:
        # The base narrative is already valid; missing sections are retried later.
        try:
            return await self.narratives.ensure_sections(
                book, language, context, prompt_version=prompt_version
            )
        except CapacityError as e:
            logger.info(
                "Deep-dive generation deferred",
                book_key=book.key,
                code=e.code,
                retry_after=e.retry_after,
            )
            return book
