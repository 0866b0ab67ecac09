"""API request and response schemas."""

from library_service.schemas.base import APIRequest, APIResponse
from library_service.schemas.library import (
    BookResponse,
    BookWithNarrativeResponse,
    ChartInputRequest,
    ChartNarrativeRequest,
    NumerologyInputRequest,
    NumerologyNarrativeRequest,
)


__all__ = [
    "APIRequest",
    "APIResponse",
    "BookResponse",
    "BookWithNarrativeResponse",
    "ChartInputRequest",
    "ChartNarrativeRequest",
    "NumerologyInputRequest",
    "NumerologyNarrativeRequest",
]
