"""HTTP client for OpenAI-compatible chat completions.

There is deliberately no response cache here; generated narratives are
cached as part of their book.
"""

from __future__ import annotations

from typing import Any

import httpx
import orjson
from aiolimiter import AsyncLimiter
from pydantic import ValidationError

from library_service.llm.exceptions import (
    LLMConfigurationError,
    LLMRateLimitError,
    LLMResponseError,
    LLMTimeoutError,
    LLMUnavailableError,
    LLMValidationError,
)
from library_service.llm.models import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    LLMCompletionResult,
)
from library_service.observability.logging import get_logger


logger = get_logger(__name__)


class OpenAIClient:
    """Async client for ``POST {base_url}/chat/completions``.

    Attributes:
        base_url: API base URL.
        model: Default model.
        timeout: HTTP request timeout in seconds.
        max_retries: Retries for timeouts and connection errors.
    """

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        max_retries: int = 1,
        requests_per_minute: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._http_client: httpx.AsyncClient | None = None
        # One request per (60 / rpm) seconds, no initial burst
        self._rate_limiter = AsyncLimiter(1, 60.0 / requests_per_minute)

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def initialize(self) -> None:
        if self._http_client is not None:
            return
        if not self.api_key:
            msg = "OPENAI_API_KEY is not set"
            raise LLMConfigurationError(msg)

        self._http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=20),
        )
        logger.info("OpenAIClient initialized", model=self.model, timeout=self.timeout)

    async def shutdown(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug("OpenAIClient shutdown")

    async def _execute_with_retry(self, request: ChatRequest) -> ChatResponse:
        if self._http_client is None:
            await self.initialize()
        assert self._http_client is not None

        last_exception: Exception | None = None

        for attempt in range(self.max_retries + 1):
            await self._rate_limiter.acquire()

            try:
                response = await self._http_client.post(
                    self.chat_url,
                    json=request.model_dump(exclude_none=True),
                )

                if response.status_code == 429:
                    retry_after = response.headers.get("retry-after", "60")
                    msg = f"OpenAI rate limit exceeded, retry after {retry_after}s"
                    raise LLMRateLimitError(msg)

                response.raise_for_status()
                return ChatResponse.model_validate(response.json())

            except httpx.TimeoutException as e:
                last_exception = e
                logger.warning(
                    "OpenAI request timeout",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                )
                if attempt < self.max_retries:
                    continue
                msg = f"OpenAI timeout after {self.timeout}s"
                raise LLMTimeoutError(msg) from e

            except httpx.HTTPStatusError as e:
                logger.warning(
                    "OpenAI request failed",
                    status_code=e.response.status_code,
                )
                msg = f"OpenAI returned {e.response.status_code}"
                raise LLMResponseError(msg) from e

            except httpx.RequestError as e:
                last_exception = e
                logger.warning(
                    "OpenAI connection error",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    error=str(e),
                )
                if attempt < self.max_retries:
                    continue
                msg = f"Cannot connect to OpenAI: {e}"
                raise LLMUnavailableError(msg) from e

            except (ValidationError, ValueError) as e:
                msg = "OpenAI returned a malformed response envelope"
                raise LLMResponseError(msg) from e

        msg = "Max retries exceeded"
        raise LLMUnavailableError(msg) from last_exception

    async def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        system: str | None = None,
        json_mode: bool = False,
        options: dict[str, Any] | None = None,
    ) -> LLMCompletionResult:
        """Generate a chat completion.

        Args:
            prompt: User message.
            model: Model override (uses client default if None).
            system: Optional system message.
            json_mode: Request ``{"type": "json_object"}`` output and check
                that the reply parses as a JSON object.
            options: ``temperature`` and ``max_tokens``.
        """
        options = options or {}
        messages = []
        if system:
            messages.append(ChatMessage(role="system", content=system))
        messages.append(ChatMessage(role="user", content=prompt))

        request = ChatRequest(
            model=model or self.model,
            messages=messages,
            response_format={"type": "json_object"} if json_mode else None,
            temperature=options.get("temperature", 0.7),
            max_tokens=options.get("max_tokens"),
        )

        response = await self._execute_with_retry(request)
        raw_response = response.choices[0].message.content

        if json_mode:
            try:
                parsed = orjson.loads(raw_response)
            except orjson.JSONDecodeError as e:
                logger.warning("OpenAI returned non-JSON output", model=response.model)
                msg = "Response is not valid JSON"
                raise LLMValidationError(msg) from e
            if not isinstance(parsed, dict):
                msg = "Response is not a JSON object"
                raise LLMValidationError(msg)

        usage = response.usage
        return LLMCompletionResult(
            raw_response=raw_response,
            model=response.model,
            prompt_tokens=usage.prompt_tokens if usage else None,
            completion_tokens=usage.completion_tokens if usage else None,
        )
