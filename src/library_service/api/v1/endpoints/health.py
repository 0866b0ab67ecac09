"""Health check endpoints.

Provides liveness and readiness probes for Kubernetes and load balancers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from library_service.cache.redis import check_redis_health
from library_service.core.config import Settings, get_settings
from library_service.database.connection import check_database_health


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Health status", examples=["healthy"])
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Current server timestamp",
    )
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Deployment environment")


class ReadinessResponse(HealthResponse):
    """Readiness check response with dependency status."""

    dependencies: dict[str, str] = Field(
        default_factory=dict,
        description="Status of external dependencies",
    )
    libraries: list[str] = Field(
        default_factory=list,
        description="Libraries currently serving requests",
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Basic health check to verify the service is running.",
)
async def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Check if the service is alive. External dependencies are not checked."""
    return HealthResponse(
        status="healthy",
        version=settings.app.version,
        environment=settings.APP_ENV,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Readiness check verifying Redis and PostgreSQL are reachable.",
    responses={503: {"description": "A dependency is unhealthy"}},
)
async def readiness_check(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> ORJSONResponse:
    """Check if the service is ready to handle requests.

    Returns 503 while any dependency is unhealthy so the instance is taken
    out of rotation.
    """
    dependencies: dict[str, str] = {}
    dependencies.update(await check_redis_health())
    dependencies.update(await check_database_health())

    all_healthy = all(value == "healthy" for value in dependencies.values())
    body = ReadinessResponse(
        status="ready" if all_healthy else "degraded",
        version=settings.app.version,
        environment=settings.APP_ENV,
        dependencies=dependencies,
        libraries=sorted(str(kind) for kind in getattr(request.app.state, "libraries", {})),
    )
    return ORJSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(mode="json"),
    )
