"""Narrative Cache Layer.

A stored narrative is reused only while both of its tags match the
request: the prompt version and the language. The geometry schema version
is covered by the book key itself. A book holds one narrative at a time,
so generating a second language replaces the first.

Chart narratives also carry deep-dive sections under ``deepDives``. Each
section has its own ``promptVersion`` and is regenerated on its own.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from library_service.llm.prompts import SectionDeepDivePrompt
from library_service.observability.logging import get_logger
from library_service.observability.metrics import record_narrative_request
from library_service.services.library.constants import DEEP_DIVE_KEYS, DEEP_DIVES_FIELD
from library_service.services.library.exceptions import PersistenceError
from library_service.services.library.models import (
    Book,
    GenerationKind,
    PersonalizationContext,
)


if TYPE_CHECKING:
    from collections.abc import Iterable

    from library_service.database.repositories import BookRepository
    from library_service.llm.prompts.base import BasePrompt
    from library_service.services.library.coordinator import GenerationCoordinator

logger = get_logger(__name__)


def is_valid(book: Book, language: str, prompt_version: int) -> bool:
    """True when the stored narrative can be served for this request."""
    return (
        book.narrative is not None
        and book.narrative_prompt_version == prompt_version
        and book.narrative_language == language
    )


def stale_sections(
    book: Book,
    section_version: int,
    keys: Iterable[str] | None = None,
) -> list[str]:
    """Return the requested section keys that are missing or outdated."""
    existing: dict[str, Any] = (book.narrative or {}).get(DEEP_DIVES_FIELD) or {}
    stale = []
    for key in keys or DEEP_DIVE_KEYS:
        section = existing.get(key)
        if not isinstance(section, dict) or section.get("promptVersion") != section_version:
            stale.append(key)
    return stale


class NarrativeCache:
    """Serve cached narratives and fill misses through the coordinator."""

    def __init__(
        self,
        repository: BookRepository,
        coordinator: GenerationCoordinator,
        prompt: BasePrompt[Any],
        prompt_version: int,
        *,
        section_prompt: SectionDeepDivePrompt | None = None,
        section_prompt_version: int = 1,
    ) -> None:
        """Initialize the cache for one library.

        Args:
            repository: Book storage for the library.
            coordinator: Runs generation on a miss.
            prompt: Narrative prompt for the library.
            prompt_version: Current narrative prompt version.
            section_prompt: Deep-dive prompt; None if the library has none.
            section_prompt_version: Current deep-dive prompt version.
        """
        self._repo = repository
        self._coordinator = coordinator
        self._prompt = prompt
        self.prompt_version = prompt_version
        self._section_prompt = section_prompt
        self.section_prompt_version = section_prompt_version

    @property
    def library(self) -> str:
        return str(self._repo.library)

    @property
    def supports_sections(self) -> bool:
        return self._section_prompt is not None

    async def _reload(self, key: str) -> Book | None:
        # A failed re-read only means generating again.
        try:
            return await self._repo.get(key)
        except PersistenceError as e:
            logger.warning(
                "Book re-read failed, generating anyway",
                book_key=key,
                error=str(e.cause or e),
            )
            return None

    async def ensure_narrative(
        self,
        book: Book,
        language: str,
        context: PersonalizationContext | None = None,
        *,
        prompt_version: int | None = None,
    ) -> Book:
        """Return ``book`` with a narrative valid for ``language``, if possible.

        On a hit the book is returned unchanged. On a miss the coordinator
        generates a narrative, which overwrites the stored one. If
        generation fails the book is returned as it was; check the result
        with ``is_valid``.

        Raises:
            BudgetExceededError: Today's budget is spent.
            LockUnavailableError: Generation is in progress elsewhere or the
                lock store is down.
        """
        version = prompt_version if prompt_version is not None else self.prompt_version
        if is_valid(book, language, version):
            logger.debug("Narrative cache hit", book_key=book.key, library=self.library)
            record_narrative_request(self.library, "hit")
            return book

        context = context or PersonalizationContext()
        fresh: Book | None = None

        async def already_generated() -> bool:
            nonlocal fresh
            fresh = await self._reload(book.key)
            return fresh is not None and is_valid(fresh, language, version)

        outcome = await self._coordinator.generate(
            book,
            GenerationKind.NARRATIVE,
            self._prompt,
            language=language,
            prompt_version=version,
            prompt_kwargs=context.prompt_kwargs(),
            lock_suffix=language,
            already_done=already_generated,
        )
        if outcome is None:
            if fresh is not None and is_valid(fresh, language, version):
                record_narrative_request(self.library, "hit")
                return fresh
            record_narrative_request(self.library, "unavailable")
            return book

        _, result = outcome
        record_narrative_request(self.library, "generated")
        generated = book.model_copy(
            update={
                "narrative": result.narrative,
                "narrative_language": result.language,
                "narrative_prompt_version": result.prompt_version,
                "narrative_generated_at": datetime.now(UTC),
            }
        )
        try:
            stored = await self._repo.store_narrative(
                book.key, result.narrative, result.language, result.prompt_version
            )
        except PersistenceError as e:
            # The caller still gets this narrative; the next request regenerates.
            logger.error(
                "Failed to store narrative",
                book_key=book.key,
                library=self.library,
                error=str(e.cause or e),
            )
            return generated
        return stored or generated

    async def ensure_sections(
        self,
        book: Book,
        language: str,
        context: PersonalizationContext | None = None,
        keys: Iterable[str] | None = None,
        *,
        prompt_version: int | None = None,
    ) -> Book:
        """Regenerate only the deep-dive sections that are missing or outdated.

        Requires a valid base narrative in ``language`` at ``prompt_version``
        (the current version by default); otherwise the book is returned
        unchanged. Sections that fail validation are skipped and retried on
        the next request. Sections the model returns but were not requested
        are discarded.

        Raises:
            BudgetExceededError: Today's budget is spent.
            LockUnavailableError: Generation is in progress elsewhere or the
                lock store is down.
        """
        if self._section_prompt is None:
            return book
        version = prompt_version if prompt_version is not None else self.prompt_version
        if not is_valid(book, language, version):
            return book

        requested = list(keys) if keys is not None else None
        stale = stale_sections(book, self.section_prompt_version, requested)
        if not stale:
            return book

        context = context or PersonalizationContext()
        fresh: Book | None = None

        async def already_generated() -> bool:
            nonlocal fresh
            fresh = await self._reload(book.key)
            return fresh is not None and not stale_sections(
                fresh, self.section_prompt_version, stale
            )

        outcome = await self._coordinator.generate(
            book,
            GenerationKind.SECTIONS,
            self._section_prompt,
            language=language,
            prompt_version=self.section_prompt_version,
            prompt_kwargs={**context.prompt_kwargs(), "section_keys": stale},
            lock_suffix=language,
            already_done=already_generated,
        )
        if outcome is None:
            if fresh is not None and not stale_sections(
                fresh, self.section_prompt_version, stale
            ):
                return fresh
            return book

        parsed, _ = outcome
        sections = {
            key: {
                **section.model_dump(mode="json", by_alias=True),
                "promptVersion": self.section_prompt_version,
            }
            for key, section in parsed.sections.items()
            if key in stale
        }
        if not sections:
            logger.warning(
                "Deep-dive reply held no requested section",
                book_key=book.key,
                requested=len(stale),
            )
            return book
        logger.info(
            "Deep-dive sections generated",
            book_key=book.key,
            requested=len(stale),
            generated=len(sections),
        )

        narrative = dict(book.narrative or {})
        narrative[DEEP_DIVES_FIELD] = {
            **(narrative.get(DEEP_DIVES_FIELD) or {}),
            **sections,
        }
        merged = book.model_copy(update={"narrative": narrative})
        try:
            stored = await self._repo.merge_sections(book.key, sections)
        except PersistenceError as e:
            logger.error(
                "Failed to store deep-dive sections",
                book_key=book.key,
                error=str(e.cause or e),
            )
            return merged
        return stored or merged
