"""OpenTelemetry distributed tracing configuration.

FastAPI and Redis are auto-instrumented; library operations open their own
spans through :func:`library_span`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from library_service.core.config import get_settings
from library_service.observability.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Iterator

    from fastapi import FastAPI

    from library_service.core.config import Settings

logger = get_logger(__name__)

_TRACER_NAME = "library_service"


def setup_tracing(app: FastAPI, settings: Settings | None = None) -> None:
    """Configure the tracer provider, exporter and auto-instrumentation.

    Args:
        app: The FastAPI application instance.
        settings: Optional settings override. If not provided, uses get_settings().
    """
    if settings is None:
        settings = get_settings()

    tracing = settings.observability.tracing
    if not tracing.enabled:
        logger.info("Tracing disabled")
        return

    resource = Resource.create(
        {
            "service.name": settings.app.name.lower().replace(" ", "-"),
            "service.version": settings.app.version,
            "deployment.environment": settings.APP_ENV,
        }
    )
    provider = TracerProvider(resource=resource)

    if tracing.otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(endpoint=tracing.otlp_endpoint, insecure=True)
            )
        )
        logger.info("OTLP trace exporter configured", endpoint=tracing.otlp_endpoint)
    elif settings.is_development:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console trace exporter configured (development mode)")

    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,ready,metrics")
    RedisInstrumentor().instrument()

    logger.info("OpenTelemetry tracing configured")


def shutdown_tracing() -> None:
    """Flush pending spans before the process exits."""
    provider = trace.get_tracer_provider()
    if isinstance(provider, TracerProvider):
        provider.shutdown()
        logger.info("Tracing shutdown complete")


def get_tracer(name: str = _TRACER_NAME) -> trace.Tracer:
    return trace.get_tracer(name)


@contextmanager
def library_span(
    name: str,
    *,
    library: str,
    book_key: str,
    kind: str,
) -> Iterator[trace.Span]:
    """Open a span annotated with the book it works on.

    Example:
        with library_span("library.generate", library="chart",
                          book_key=key, kind="narrative"):
            ...
    """
    with get_tracer().start_as_current_span(name) as span:
        span.set_attribute("library", library)
        span.set_attribute("book_key", book_key)
        span.set_attribute("kind", kind)
        yield span


__all__ = [
    "get_tracer",
    "library_span",
    "setup_tracing",
    "shutdown_tracing",
]
