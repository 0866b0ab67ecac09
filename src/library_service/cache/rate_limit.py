"""HTTP-level rate limiting using SlowAPI with a Redis backend.

This is a coarse per-route abuse guard. Narrative generation attempts are
additionally limited per caller by the Request Gate, which only runs on
cache misses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import status
from fastapi.responses import ORJSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from library_service.core.config import get_settings
from library_service.core.exceptions import ErrorResponse
from library_service.observability.logging import get_logger


if TYPE_CHECKING:
    from fastapi import FastAPI
    from starlette.requests import Request

logger = get_logger(__name__)

CALLER_ID_HEADER = "X-Caller-ID"


def get_caller_key(request: Request) -> str:
    """Identify the caller.

    Authenticated user id first, then the ``X-Caller-ID`` header, then the
    client IP. Shared by the HTTP limiter and the Request Gate.
    """
    user = getattr(request.state, "user", None)
    if user is not None and getattr(user, "id", None):
        return f"user:{user.id}"

    caller_id = request.headers.get(CALLER_ID_HEADER, "").strip()
    if caller_id:
        return f"caller:{caller_id}"

    return f"ip:{get_remote_address(request)}"


def _narrative_limit() -> str:
    return get_settings().rate_limiting.narrative


def create_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=get_caller_key,
        default_limits=[settings.rate_limiting.default],
        storage_uri=settings.redis_rate_limit_url,
        strategy="fixed-window",
        headers_enabled=True,
        enabled=settings.rate_limiting.enabled,
    )


limiter = create_limiter()


async def rate_limit_exceeded_handler(
    request: Request,
    exc: Exception,
) -> ORJSONResponse:
    """Render a slowapi rejection in the service error envelope."""
    assert isinstance(exc, RateLimitExceeded)
    retry_after = exc.limit.limit.get_expiry() if exc.limit else 60
    logger.warning(
        "HTTP rate limit exceeded",
        path=request.url.path,
        limit=str(exc.detail),
    )
    return ORJSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=ErrorResponse(
            error="RATE_LIMIT_EXCEEDED",
            message="Too many requests. Please try again later.",
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(),
        headers={"Retry-After": str(retry_after)},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """Attach the limiter, its default limits and its error handler."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    logger.info("Rate limiting configured", enabled=limiter.enabled)


def rate_limit_narrative() -> Any:
    """Per-route limit for narrative endpoints (``rate_limiting.narrative``).

    Example:
        @router.post("/charts/narrative")
        @rate_limit_narrative()
        async def chart_narrative(request: Request, ...):
            ...
    """
    return limiter.limit(_narrative_limit)
