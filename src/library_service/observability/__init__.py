"""Observability components: logging, metrics, and tracing."""

from library_service.observability.logging import (
    bind_context,
    clear_context,
    get_context,
    get_logger,
    logger,
    setup_logging,
)
from library_service.observability.metrics import (
    record_book_lookup,
    record_llm_cost,
    record_narrative_request,
    setup_metrics,
)
from library_service.observability.tracing import (
    get_tracer,
    library_span,
    setup_tracing,
    shutdown_tracing,
)


__all__ = [
    "bind_context",
    "clear_context",
    "get_context",
    "get_logger",
    "get_tracer",
    "library_span",
    "logger",
    "record_book_lookup",
    "record_llm_cost",
    "record_narrative_request",
    "setup_logging",
    "setup_metrics",
    "setup_tracing",
    "shutdown_tracing",
]
