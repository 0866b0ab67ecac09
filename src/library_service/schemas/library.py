"""Library request and response schemas.

Input fields are all optional at the schema level so that the Key
Normalizer can report every missing field in one error.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from library_service.schemas.base import APIRequest, APIResponse
from library_service.services.library.models import (
    Book,
    BookWithNarrative,
    LibraryKind,
    PersonalizationContext,
)


# =============================================================================
# Requests
# =============================================================================


class ChartInputRequest(APIRequest):
    """Raw birth data for a natal chart."""

    birth_date: str | None = Field(
        default=None, description="Birth date (YYYY-MM-DD)", examples=["1990-01-01"]
    )
    birth_time: str | None = Field(
        default=None, description="Local birth time (HH:MM)", examples=["08:30"]
    )
    birth_lat: float | str | None = Field(
        default=None, description="Latitude in degrees", examples=[40.7128]
    )
    birth_lon: float | str | None = Field(
        default=None, description="Longitude in degrees", examples=[-74.006]
    )
    timezone: str | None = Field(
        default=None, description="IANA timezone", examples=["America/New_York"]
    )

    def to_raw(self) -> dict[str, Any]:
        return self.model_dump(
            include={"birth_date", "birth_time", "birth_lat", "birth_lon", "timezone"},
            by_alias=False,
        )


class NumerologyInputRequest(APIRequest):
    """Raw name and birth date for a numerology profile."""

    first_name: str | None = Field(default=None, description="Given name")
    middle_name: str | None = Field(default=None, description="Middle name(s)")
    last_name: str | None = Field(default=None, description="Family name")
    birth_date: str | None = Field(
        default=None, description="Birth date (YYYY-MM-DD)", examples=["1992-05-04"]
    )

    def to_raw(self) -> dict[str, Any]:
        return self.model_dump(
            include={"first_name", "middle_name", "last_name", "birth_date"},
            by_alias=False,
        )


class _NarrativeOptions(APIRequest):
    language: str | None = Field(
        default=None,
        min_length=2,
        max_length=16,
        description="Narrative language; the service default if omitted",
        examples=["en"],
    )
    display_name: str | None = Field(
        default=None,
        max_length=100,
        description="Name used to address the reader. Not part of the book key.",
    )
    zodiac_sign: str | None = Field(default=None, max_length=32, examples=["Taurus"])
    birth_city: str | None = Field(default=None, max_length=100)
    birth_region: str | None = Field(default=None, max_length=100)
    birth_country: str | None = Field(default=None, max_length=100)

    def to_context(self) -> PersonalizationContext:
        return PersonalizationContext(
            display_name=self.display_name,
            zodiac_sign=self.zodiac_sign,
            birth_city=self.birth_city,
            birth_region=self.birth_region,
            birth_country=self.birth_country,
        )


class ChartNarrativeRequest(ChartInputRequest, _NarrativeOptions):
    include_sections: bool = Field(
        default=False,
        description="Also generate the deep-dive sections",
    )


class NumerologyNarrativeRequest(NumerologyInputRequest, _NarrativeOptions):
    pass


# =============================================================================
# Responses
# =============================================================================


class BookResponse(APIResponse):
    """A stored book."""

    book_key: str = Field(..., description="64-character hex key")
    library: LibraryKind
    input: dict[str, Any] = Field(..., description="Normalized input")
    geometry: dict[str, Any]
    engine_config: dict[str, Any]
    narrative: dict[str, Any] | None = None
    narrative_prompt_version: int | None = None
    narrative_language: str | None = None
    narrative_generated_at: datetime | None = None
    created_at: datetime
    last_accessed_at: datetime
    access_count: int

    @classmethod
    def from_book(cls, book: Book) -> BookResponse:
        return cls(
            book_key=book.key,
            library=book.library,
            input=book.normalized_input,
            geometry=book.geometry,
            engine_config=book.engine_config,
            narrative=book.narrative,
            narrative_prompt_version=book.narrative_prompt_version,
            narrative_language=book.narrative_language,
            narrative_generated_at=book.narrative_generated_at,
            created_at=book.created_at,
            last_accessed_at=book.last_accessed_at,
            access_count=book.access_count,
        )


class BookWithNarrativeResponse(APIResponse):
    """A book plus whether its narrative could be served."""

    book: BookResponse
    narrative_available: bool = Field(
        ...,
        description="False when generation failed; the geometry is still valid",
    )

    @classmethod
    def from_result(cls, result: BookWithNarrative) -> BookWithNarrativeResponse:
        return cls(
            book=BookResponse.from_book(result.book),
            narrative_available=result.narrative_available,
        )
