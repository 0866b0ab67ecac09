"""Prometheus metrics.

HTTP request metrics come from prometheus-fastapi-instrumentator; the
library counters below are registered on the default prometheus_client
registry so they are served from the same ``/metrics`` endpoint.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator, metrics

from library_service.core.config import get_settings
from library_service.observability.logging import get_logger


if TYPE_CHECKING:
    from fastapi import FastAPI

logger = get_logger(__name__)

METRIC_NAMESPACE = "library"

BOOK_LOOKUPS = Counter(
    "library_book_lookups_total",
    "Geometry Store lookups by outcome.",
    ["library", "result"],
)

NARRATIVE_REQUESTS = Counter(
    "library_narrative_requests_total",
    "Narrative requests by outcome.",
    ["library", "result"],
)

LLM_COST_USD = Counter(
    "library_llm_cost_usd_total",
    "Estimated LLM spend in USD.",
    ["model"],
)


def record_book_lookup(library: str, result: str) -> None:
    """Count a Geometry Store lookup (``hit``, ``miss`` or ``race``)."""
    BOOK_LOOKUPS.labels(library=library, result=result).inc()


def record_narrative_request(library: str, result: str) -> None:
    """Count a narrative request (``hit``, ``generated``, ``unavailable``, ``rejected``)."""
    NARRATIVE_REQUESTS.labels(library=library, result=result).inc()


def record_llm_cost(model: str, cost_usd: float) -> None:
    if cost_usd > 0:
        LLM_COST_USD.labels(model=model).inc(cost_usd)


def setup_metrics(app: FastAPI) -> Instrumentator:
    """Instrument the app and expose ``{prefix}/metrics``.

    Args:
        app: The FastAPI application instance.

    Returns:
        Configured Instrumentator instance.
    """
    settings = get_settings()

    if not settings.observability.metrics.enabled:
        logger.info("Metrics collection disabled")
        return Instrumentator()

    prefix = settings.api.v1_prefix
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[
            f"{prefix}/health",
            f"{prefix}/ready",
            f"{prefix}/metrics",
        ],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.add(
        metrics.default(
            metric_namespace=METRIC_NAMESPACE,
            metric_subsystem="http",
            should_only_respect_2xx_for_highr=False,
        )
    )
    instrumentator.add(
        metrics.response_size(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
            metric_namespace=METRIC_NAMESPACE,
            metric_subsystem="http",
        )
    )

    instrumentator.instrument(app)

    metrics_endpoint = f"{prefix}/metrics"
    instrumentator.expose(
        app,
        endpoint=metrics_endpoint,
        include_in_schema=True,
        tags=["Monitoring"],
    )

    logger.info("Prometheus metrics configured", endpoint=metrics_endpoint)
    return instrumentator


__all__ = [
    "BOOK_LOOKUPS",
    "LLM_COST_USD",
    "NARRATIVE_REQUESTS",
    "record_book_lookup",
    "record_llm_cost",
    "record_narrative_request",
    "setup_metrics",
]
