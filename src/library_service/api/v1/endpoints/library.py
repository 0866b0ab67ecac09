"""Library endpoints.

Provides:
- POST /charts and /numerology for geometry only
- POST /charts/narrative and /numerology/narrative for geometry plus narrative
- GET /books/{library}/{bookKey} for a direct lookup by key
"""

# No postponed annotations: the slowapi wrapper hides this module's globals
# from FastAPI's signature resolution.

from typing import Annotated, Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from starlette.responses import Response

from library_service.api.dependencies import (
    get_caller_id,
    get_chart_service,
    get_library_service,
    get_numerology_service,
)
from library_service.cache.rate_limit import rate_limit_narrative
from library_service.core.exceptions import NotFoundException
from library_service.observability.logging import get_logger
from library_service.schemas.library import (
    BookResponse,
    BookWithNarrativeResponse,
    ChartInputRequest,
    ChartNarrativeRequest,
    NumerologyInputRequest,
    NumerologyNarrativeRequest,
)
from library_service.services.library.exceptions import (
    BudgetExceededError,
    CapacityError,
    ComputationFailedError,
    IncompleteInputError,
    InvalidInputError,
    LibraryError,
    LockUnavailableError,
    PersistenceError,
)
from library_service.services.library.models import LibraryKind
from library_service.services.library.service import LibraryService


logger = get_logger(__name__)

router = APIRouter(tags=["Library"])

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    422: {"description": "Incomplete or invalid input"},
    429: {"description": "Rate limited or generation already in progress"},
    502: {"description": "Geometry engine failed"},
    503: {"description": "Budget exhausted or a backing store is unavailable"},
}


def _status_for(error: LibraryError) -> int:
    if isinstance(error, InvalidInputError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(error, BudgetExceededError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(error, LockUnavailableError) and error.reason == "store_unavailable":
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(error, CapacityError):
        return status.HTTP_429_TOO_MANY_REQUESTS
    if isinstance(error, ComputationFailedError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(error, PersistenceError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _raise_http(error: LibraryError) -> NoReturn:
    """Translate a library error into the HTTP error envelope."""
    detail: dict[str, Any] = {"error": error.code, "message": str(error)}
    headers: dict[str, str] | None = None

    if isinstance(error, IncompleteInputError):
        detail["details"] = [
            {"code": error.code, "field": name, "message": "Field is required"}
            for name in error.missing_fields
        ]
    elif isinstance(error, InvalidInputError):
        field = getattr(error, "field", None)
        if field:
            detail["details"] = [
                {"code": error.code, "field": field, "message": str(error)}
            ]
    elif isinstance(error, CapacityError):
        headers = {"Retry-After": str(error.retry_after)}

    status_code = _status_for(error)
    if status_code >= 500:
        logger.warning("Library request failed", code=error.code, status=status_code)
    raise HTTPException(status_code=status_code, detail=detail, headers=headers) from error


async def _get_book(service: LibraryService, raw: dict[str, Any]) -> BookResponse:
    try:
        book = await service.get_or_compute_book(raw)
    except LibraryError as e:
        _raise_http(e)
    return BookResponse.from_book(book)


async def _get_book_with_narrative(
    service: LibraryService,
    raw: dict[str, Any],
    body: ChartNarrativeRequest | NumerologyNarrativeRequest,
    caller_id: str,
    *,
    include_sections: bool = False,
) -> BookWithNarrativeResponse:
    try:
        result = await service.get_book_with_narrative(
            raw,
            language=body.language,
            context=body.to_context(),
            caller_id=caller_id,
            include_sections=include_sections,
        )
    except LibraryError as e:
        _raise_http(e)
    return BookWithNarrativeResponse.from_result(result)


@router.post(
    "/charts",
    response_model=BookResponse,
    summary="Get or compute a natal chart",
    description=(
        "Returns the stored chart for the birth data, computing it on first "
        "request. Identical birth data always maps to the same book."
    ),
    responses=_ERROR_RESPONSES,
)
async def get_chart(
    body: ChartInputRequest,
    service: Annotated[LibraryService, Depends(get_chart_service)],
) -> BookResponse:
    return await _get_book(service, body.to_raw())


@router.post(
    "/charts/narrative",
    response_model=BookWithNarrativeResponse,
    summary="Get a natal chart with its narrative",
    description=(
        "Serves the cached narrative when its prompt version and language "
        "match; otherwise generates one. If generation fails the chart is "
        "still returned with narrativeAvailable=false."
    ),
    responses=_ERROR_RESPONSES,
)
@rate_limit_narrative()
async def get_chart_narrative(
    request: Request,
    response: Response,
    body: ChartNarrativeRequest,
    service: Annotated[LibraryService, Depends(get_chart_service)],
    caller_id: Annotated[str, Depends(get_caller_id)],
) -> BookWithNarrativeResponse:
    return await _get_book_with_narrative(
        service,
        body.to_raw(),
        body,
        caller_id,
        include_sections=body.include_sections,
    )


@router.post(
    "/numerology",
    response_model=BookResponse,
    summary="Get or compute a numerology profile",
    responses=_ERROR_RESPONSES,
)
async def get_numerology(
    body: NumerologyInputRequest,
    service: Annotated[LibraryService, Depends(get_numerology_service)],
) -> BookResponse:
    return await _get_book(service, body.to_raw())


@router.post(
    "/numerology/narrative",
    response_model=BookWithNarrativeResponse,
    summary="Get a numerology profile with its narrative",
    responses=_ERROR_RESPONSES,
)
@rate_limit_narrative()
async def get_numerology_narrative(
    request: Request,
    response: Response,
    body: NumerologyNarrativeRequest,
    service: Annotated[LibraryService, Depends(get_numerology_service)],
    caller_id: Annotated[str, Depends(get_caller_id)],
) -> BookWithNarrativeResponse:
    return await _get_book_with_narrative(service, body.to_raw(), body, caller_id)


@router.get(
    "/books/{library}/{bookKey}",
    response_model=BookResponse,
    summary="Look up a book by key",
    responses={
        404: {
            "description": "No book stored under this key",
            "content": {
                "application/json": {
                    "example": {
                        "error": "LIBRARY_BOOK_NOT_FOUND",
                        "message": "Book not found",
                    }
                }
            },
        },
        503: {"description": "Store unavailable"},
    },
)
async def get_book_by_key(
    request: Request,
    library: LibraryKind,
    book_key: Annotated[
        str,
        Path(alias="bookKey", pattern=r"^[0-9a-f]{64}$", description="Book key"),
    ],
) -> BookResponse:
    service = get_library_service(request, library)
    try:
        book = await service.get_book(book_key)
    except LibraryError as e:
        _raise_http(e)
    if book is None:
        raise NotFoundException("Book", book_key, error="LIBRARY_BOOK_NOT_FOUND")
    return BookResponse.from_book(book)
