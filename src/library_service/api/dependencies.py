"""FastAPI dependencies for service access.

Library services are built during application startup and stored in
``app.state.libraries``, keyed by ``LibraryKind``.
"""

from __future__ import annotations

from fastapi import Request

from library_service.cache.rate_limit import get_caller_key
from library_service.core.exceptions import ServiceUnavailableException
from library_service.services.library.models import LibraryKind
from library_service.services.library.service import LibraryService


def get_library_service(request: Request, library: LibraryKind) -> LibraryService:
    """Get the service for ``library`` from app state.

    Raises:
        ServiceUnavailableException: If the library is not initialized.
    """
    libraries: dict[LibraryKind, LibraryService] = getattr(
        request.app.state, "libraries", {}
    )
    service = libraries.get(library)
    if service is None:
        raise ServiceUnavailableException(
            f"The {library} library is not available",
            error="LIBRARY_UNAVAILABLE",
        )
    return service


async def get_chart_service(request: Request) -> LibraryService:
    return get_library_service(request, LibraryKind.CHART)


async def get_numerology_service(request: Request) -> LibraryService:
    return get_library_service(request, LibraryKind.NUMEROLOGY)


async def get_caller_id(request: Request) -> str:
    """Caller identity for the Request Gate (same key as the HTTP limiter)."""
    return get_caller_key(request)
