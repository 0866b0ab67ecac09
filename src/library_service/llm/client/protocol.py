"""LLM client protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from library_service.llm.models import LLMCompletionResult


@runtime_checkable
class LLMClientProtocol(Protocol):
    """Interface of a text generation backend.

    ``generate(prompt) -> text`` with token counts as a side channel.
    Implementations are non-deterministic and metered by cost.
    """

    async def initialize(self) -> None: ...

    async def shutdown(self) -> None: ...

    async def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        system: str | None = None,
        json_mode: bool = False,
        options: dict[str, Any] | None = None,
    ) -> LLMCompletionResult:
        """Generate a completion.

        Raises:
            LLMUnavailableError: Service unreachable.
            LLMTimeoutError: Request timed out.
            LLMRateLimitError: Provider returned 429.
            LLMResponseError: HTTP error from service.
            LLMValidationError: ``json_mode`` was set and the text is not JSON.
        """
        ...
