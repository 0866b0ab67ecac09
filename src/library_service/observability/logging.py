"""Logging configuration using Loguru.

This module provides:
- Structured JSON logging for production
- Human-readable colorized output for development
- Request ID correlation via context
- Redaction of personal birth data fields
- Interception of standard library logging
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import orjson
from loguru import logger


if TYPE_CHECKING:
    from loguru import Logger, Record


# Request-scoped data (request_id, caller_id, ...)
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# Raw inputs identify a person; book keys are logged instead.
REDACTED_FIELDS: frozenset[str] = frozenset(
    {
        "birth_date",
        "birth_time",
        "birth_lat",
        "birth_lon",
        "first_name",
        "middle_name",
        "last_name",
        "display_name",
    }
)

_NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpx",
    "httpcore",
    "asyncio",
    "asyncpg",
)


class InterceptHandler(logging.Handler):
    """Forward standard library log records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record by forwarding to Loguru."""
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back past the logging module to the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _enrich(record: Record) -> None:
    """Merge request context into the record and mask personal fields."""
    extra = record["extra"]
    extra.update(_log_context.get())
    for key in REDACTED_FIELDS.intersection(extra):
        extra[key] = "***"


def _format_json(record: Record) -> str:
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["extra"].get("name", record["name"]),
        "function": record["function"],
        "line": record["line"],
        **{k: v for k, v in record["extra"].items() if k != "name"},
    }

    exception = record["exception"]
    if exception:
        payload["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    # Stash the serialized line so the format string stays brace-free
    record["extra"]["_json"] = orjson.dumps(payload, default=str).decode()
    return "{extra[_json]}\n{exception}"


def _format_dev(record: Record) -> str:
    context = " ".join(
        f"{k}={v}" for k, v in record["extra"].items() if k not in ("name", "_json")
    )
    context_str = f" | {context}" if context else ""
    # Escape braces so user data is not treated as format fields
    context_str = context_str.replace("{", "{{").replace("}", "}}")
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>"
        f"{context_str} - "
        "<level>{message}</level>\n{exception}"
    )


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    *,
    is_development: bool = False,
) -> None:
    """Configure Loguru logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "text")
        is_development: Enable development-friendly formatting
    """
    logger.remove()
    logger.configure(extra={"name": "library_service"}, patcher=_enrich)

    if log_format == "json" and not is_development:
        logger.add(
            sys.stdout,
            format=_format_json,
            level=log_level.upper(),
            colorize=False,
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stdout,
            format=_format_dev,
            level=log_level.upper(),
            colorize=True,
            backtrace=True,
            diagnose=is_development,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> Logger:
    """Get a Loguru logger bound to a module name."""
    return logger.bind(name=name)


def bind_context(**kwargs: Any) -> None:
    """Bind values included in every log entry of the current async context.

    Example:
        bind_context(request_id="abc-123", caller_id="user:42")
    """
    _log_context.set({**_log_context.get(), **kwargs})


def clear_context() -> None:
    """Reset the logging context (called at the start of each request)."""
    _log_context.set({})


def get_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


__all__ = [
    "REDACTED_FIELDS",
    "bind_context",
    "clear_context",
    "get_context",
    "get_logger",
    "logger",
    "setup_logging",
]
