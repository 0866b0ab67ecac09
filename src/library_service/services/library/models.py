"""Domain models for the book library.

A *book* is one computed geometry payload plus at most one cached
narrative, addressed by a deterministic key derived from its normalized
input and engine configuration.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class LibraryKind(StrEnum):
    """Geometry type; each library is stored in its own table."""

    CHART = "chart"
    NUMEROLOGY = "numerology"


class GenerationKind(StrEnum):
    """What an expensive call produces; part of the generation lock key."""

    GEOMETRY = "geometry"
    NARRATIVE = "narrative"
    SECTIONS = "sections"


# =============================================================================
# Normalized inputs and engine configuration
# =============================================================================


class ChartInput(BaseModel):
    """Canonical birth data for a natal chart."""

    model_config = ConfigDict(frozen=True)

    birth_date: str  # YYYY-MM-DD
    birth_time: str  # HH:MM
    birth_lat: float  # rounded to 6 places
    birth_lon: float
    timezone: str  # IANA name, kept exactly


class NumerologyInput(BaseModel):
    """Canonical name and birth date for a numerology profile."""

    model_config = ConfigDict(frozen=True)

    first_name: str  # trimmed, upper-cased
    middle_name: str | None = None
    last_name: str
    birth_date: str


class ChartEngineConfig(BaseModel):
    """Version tag of the chart computation.

    Changing any field is a breaking change and produces new book keys.
    """

    model_config = ConfigDict(frozen=True)

    house_system: str = "placidus"
    zodiac: str = "tropical"
    schema_version: int = 8


class NumerologyEngineConfig(BaseModel):
    """Version tag of the numerology computation."""

    model_config = ConfigDict(frozen=True)

    system: str = "pythagorean"
    config_version: int = 1


type NormalizedInput = ChartInput | NumerologyInput
type EngineConfig = ChartEngineConfig | NumerologyEngineConfig


# =============================================================================
# Books
# =============================================================================


class Book(BaseModel):
    """The persisted unit of deduplication.

    ``key``, ``normalized_input``, ``geometry`` and ``engine_config`` never
    change after creation; only the ``narrative*`` fields and the access
    counters are updated.
    """

    key: str
    library: LibraryKind
    normalized_input: dict[str, Any]
    geometry: dict[str, Any]
    engine_config: dict[str, Any]
    narrative: dict[str, Any] | None = None
    narrative_prompt_version: int | None = None
    narrative_language: str | None = None
    narrative_generated_at: datetime | None = None
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = 1


class NarrativeResult(BaseModel):
    """A validated narrative together with what it cost to produce."""

    model_config = ConfigDict(frozen=True)

    narrative: dict[str, Any]
    language: str
    prompt_version: int
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0


class PersonalizationContext(BaseModel):
    """Caller-specific context fed into prompts.

    Never part of a book key: a narrative generated with one caller's
    context is reused for every caller with the same input.
    """

    display_name: str | None = None
    zodiac_sign: str | None = None
    birth_city: str | None = None
    birth_region: str | None = None
    birth_country: str | None = None

    def prompt_kwargs(self) -> dict[str, Any]:
        return self.model_dump()


class BookWithNarrative(BaseModel):
    """Result of a narrative request.

    ``narrative_available`` is False when generation failed; the geometry in
    ``book`` is still valid.
    """

    book: Book
    narrative_available: bool
