"""LLM client exceptions.

The Generation Coordinator turns every one of these into a "narrative
unavailable" result; none of them reaches an HTTP caller.
"""

from __future__ import annotations


class LLMError(Exception):
    """Base exception for LLM client errors."""


class LLMUnavailableError(LLMError):
    """Raised when the LLM service cannot be reached."""


class LLMTimeoutError(LLMUnavailableError):
    """Raised when an LLM request times out after all retries."""


class LLMResponseError(LLMError):
    """Raised when the LLM returns an HTTP error or a malformed envelope."""


class LLMValidationError(LLMError):
    """Raised when the completion is not the JSON the caller asked for."""


class LLMRateLimitError(LLMError):
    """Raised when the provider rate limits the request (HTTP 429)."""


class LLMConfigurationError(LLMError):
    """Raised when the LLM client is misconfigured (e.g. no API key)."""
