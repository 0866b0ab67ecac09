"""Exceptions for the book library.

Every error carries a stable ``code`` so callers can tell "try again"
(capacity) from "try again in N seconds" apart from upstream failures.
"""

from __future__ import annotations

from typing import ClassVar, Literal


class LibraryError(Exception):
    """Base exception for book library errors."""

    code: ClassVar[str] = "LIBRARY_ERROR"

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message.
            cause: Optional underlying exception.
        """
        self.cause = cause
        super().__init__(message)


# =============================================================================
# Caller errors
# =============================================================================


class InvalidInputError(LibraryError):
    """Raised when raw input cannot be normalized. Nothing is computed."""

    code: ClassVar[str] = "LIBRARY_INVALID_INPUT"


class IncompleteInputError(InvalidInputError):
    """Raised when required fields are missing.

    All missing fields are reported together; no defaults are substituted.
    """

    code: ClassVar[str] = "LIBRARY_INCOMPLETE_INPUT"

    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = missing_fields
        super().__init__(f"Missing required fields: {', '.join(missing_fields)}")


class InvalidFormatError(InvalidInputError):
    """Raised when a field does not match its expected format."""

    code: ClassVar[str] = "LIBRARY_INVALID_FORMAT"

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid format for {field}")


class InvalidRangeError(InvalidInputError):
    """Raised when a numeric field is outside its allowed range."""

    code: ClassVar[str] = "LIBRARY_INVALID_RANGE"

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} is out of range")


# =============================================================================
# Capacity errors
# =============================================================================


class CapacityError(LibraryError):
    """Base for retryable refusals; ``retry_after`` is in seconds."""

    def __init__(self, message: str, retry_after: int) -> None:
        self.retry_after = max(int(retry_after), 1)
        super().__init__(message)


class RateLimitedError(CapacityError):
    """Raised by the Request Gate when a caller exceeds a limit."""

    def __init__(
        self,
        reason: Literal["burst", "cooldown", "sustained"],
        retry_after: int,
    ) -> None:
        self.reason = reason
        super().__init__(f"Rate limited ({reason})", retry_after)

    @property
    def code(self) -> str:  # type: ignore[override]
        return "LIBRARY_COOLDOWN" if self.reason == "cooldown" else "LIBRARY_RATE_LIMIT"


class LockUnavailableError(CapacityError):
    """Raised when a generation lock cannot be taken.

    ``busy``: another worker holds the lock for this book.
    ``store_unavailable``: the lock/counter store could not be reached.
    """

    def __init__(
        self,
        reason: Literal["busy", "store_unavailable"],
        retry_after: int,
    ) -> None:
        self.reason = reason
        super().__init__(f"Generation lock unavailable ({reason})", retry_after)

    @property
    def code(self) -> str:  # type: ignore[override]
        if self.reason == "busy":
            return "LIBRARY_LOCK_BUSY"
        return "LIBRARY_REDIS_UNAVAILABLE"


class BudgetExceededError(CapacityError):
    """Raised when today's LLM spend has reached the configured budget."""

    code: ClassVar[str] = "LIBRARY_BUDGET_EXCEEDED"


# =============================================================================
# Upstream errors
# =============================================================================


class ComputationFailedError(LibraryError):
    """Raised when the geometry engine fails. Nothing is stored."""

    code: ClassVar[str] = "LIBRARY_COMPUTATION_FAILED"


class PersistenceError(LibraryError):
    """Raised when the durable store cannot be read or written."""

    code: ClassVar[str] = "LIBRARY_PERSISTENCE_ERROR"
