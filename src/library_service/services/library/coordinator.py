"""Generation Coordinator.

Runs one expensive generation for a book on a narrative cache miss:

    budget check -> lock -> recheck -> generate -> record spend -> validate -> unlock

Capacity refusals (budget, lock) raise. Everything that goes wrong after
the lock is taken (transport errors, timeouts, invalid output) returns
None so the caller can still serve the geometry. Nothing is persisted
here; the Narrative Cache Layer stores what this returns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from redis.exceptions import RedisError

from library_service.llm.exceptions import LLMError
from library_service.observability.logging import get_logger
from library_service.observability.tracing import library_span
from library_service.services.library.constants import LOCK_KEY_PREFIX
from library_service.services.library.exceptions import LockUnavailableError
from library_service.services.library.models import (
    Book,
    GenerationKind,
    NarrativeResult,
)


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from library_service.cache.locks import DistributedLock
    from library_service.llm.client.protocol import LLMClientProtocol
    from library_service.llm.prompts.base import BasePrompt
    from library_service.services.library.budget import BudgetGuard

logger = get_logger(__name__)

# Retry hint when the lock store is down.
LOCK_STORE_RETRY_AFTER = 30


def lock_key(book: Book, kind: GenerationKind, suffix: str | None = None) -> str:
    """``library:lock:{library}:{kind}:{book_key}[:{suffix}]``."""
    key = f"{LOCK_KEY_PREFIX}:{book.library}:{kind}:{book.key}"
    return f"{key}:{suffix}" if suffix else key


class GenerationCoordinator:
    """Single-flight, budgeted LLM generation for one book at a time."""

    def __init__(
        self,
        llm_client: LLMClientProtocol | None,
        lock: DistributedLock,
        budget: BudgetGuard,
        *,
        lock_busy_retry_after: int = 10,
        model: str | None = None,
    ) -> None:
        self._llm = llm_client
        self._lock = lock
        self._budget = budget
        self._lock_busy_retry_after = lock_busy_retry_after
        self._model = model

    async def generate[T: BaseModel](
        self,
        book: Book,
        kind: GenerationKind,
        prompt: BasePrompt[T],
        *,
        language: str,
        prompt_version: int,
        prompt_kwargs: dict[str, Any] | None = None,
        lock_suffix: str | None = None,
        already_done: Callable[[], Awaitable[bool]] | None = None,
    ) -> tuple[T, NarrativeResult] | None:
        """Generate and validate output for ``book``.

        Args:
            book: The book whose geometry feeds the prompt.
            kind: Lock namespace (narrative or sections).
            prompt: Prompt that builds the request and validates the reply.
            language: Requested narrative language.
            prompt_version: Version stamped on the result.
            prompt_kwargs: Extra arguments for ``prompt.format``.
            lock_suffix: Extra lock key component, e.g. the language.
            already_done: Called once the lock is held; True means another
                worker produced the output while this one waited, and
                nothing is generated.

        Returns:
            The parsed output and its metadata, or None if generation or
            validation failed.

        Raises:
            BudgetExceededError: Today's budget is spent.
            LockUnavailableError: Another worker holds the lock, or the
                lock store is unreachable.
        """
        if self._llm is None:
            logger.debug("LLM disabled, narrative unavailable", book_key=book.key)
            return None

        await self._budget.check()

        name = lock_key(book, kind, lock_suffix)
        try:
            token = await self._lock.acquire(name)
        except RedisError as e:
            logger.error("Lock store unavailable", book_key=book.key, error=str(e))
            raise LockUnavailableError(
                "store_unavailable", LOCK_STORE_RETRY_AFTER
            ) from e
        if token is None:
            logger.info("Generation already in progress", book_key=book.key, kind=kind)
            raise LockUnavailableError("busy", self._lock_busy_retry_after)

        try:
            if already_done is not None and await already_done():
                logger.info(
                    "Generated elsewhere while waiting for the lock",
                    book_key=book.key,
                    kind=kind,
                )
                return None
            with library_span(
                "library.generate",
                library=book.library,
                book_key=book.key,
                kind=kind,
            ):
                return await self._run(
                    self._llm,
                    book,
                    prompt,
                    language=language,
                    prompt_version=prompt_version,
                    prompt_kwargs=prompt_kwargs or {},
                )
        finally:
            await self._lock.release(name, token)

    async def _run[T: BaseModel](
        self,
        llm: LLMClientProtocol,
        book: Book,
        prompt: BasePrompt[T],
        *,
        language: str,
        prompt_version: int,
        prompt_kwargs: dict[str, Any],
    ) -> tuple[T, NarrativeResult] | None:
        try:
            text = prompt.format(geometry=book.geometry, language=language, **prompt_kwargs)
            completion = await llm.generate(
                text,
                model=self._model,
                system=prompt.system_prompt,
                json_mode=True,
                options=prompt.get_options(),
            )
        except LLMError as e:
            logger.warning(
                "Generation failed",
                book_key=book.key,
                prompt=prompt.name,
                error_type=type(e).__name__,
            )
            return None

        input_tokens = completion.prompt_tokens or 0
        output_tokens = completion.completion_tokens or 0
        cost = await self._budget.record(completion.model, input_tokens, output_tokens)

        try:
            parsed = prompt.parse_response(completion.raw_response)
        except LLMError as e:
            logger.warning(
                "Generated output rejected",
                book_key=book.key,
                prompt=prompt.name,
                reason=str(e),
            )
            return None

        result = NarrativeResult(
            narrative=parsed.model_dump(mode="json", by_alias=True),
            language=language,
            prompt_version=prompt_version,
            model=completion.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost,
        )
        logger.info(
            "Generation succeeded",
            book_key=book.key,
            prompt=prompt.name,
            model=completion.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return parsed, result
