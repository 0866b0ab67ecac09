"""Numerology profile narrative prompt."""

from __future__ import annotations

from typing import Any, ClassVar

import orjson
from pydantic import BaseModel, Field

from library_service.services.library.constants import (
    MAX_NUMEROLOGY_SECTIONS,
    MIN_NUMEROLOGY_BODY_LENGTH,
    MIN_NUMEROLOGY_HEADING_LENGTH,
    MIN_NUMEROLOGY_SECTIONS,
)

from .base import BasePrompt, OutputModel


class NumerologySection(OutputModel):
    heading: str = Field(..., min_length=MIN_NUMEROLOGY_HEADING_LENGTH)
    body: str = Field(..., min_length=MIN_NUMEROLOGY_BODY_LENGTH)


class NumerologyNarrative(OutputModel):
    sections: list[NumerologySection] = Field(
        ...,
        min_length=MIN_NUMEROLOGY_SECTIONS,
        max_length=MAX_NUMEROLOGY_SECTIONS,
    )


class NumerologyNarrativePrompt(BasePrompt[NumerologyNarrative]):
    """Prompt for a numerology reading.

    Example output:
        {"sections": [{"heading": "Your Life Path: 3", "body": "..."}, ...]}
    """

    output_schema: ClassVar[type[BaseModel]] = NumerologyNarrative

    system_prompt: ClassVar[
        str | None
    ] = """You are a thoughtful numerologist. You receive a computed numerology profile as JSON.
Interpret only the numbers given; never recompute or invent them.

Return {"sections": [{"heading", "body"}, ...]} with 4 to 7 sections, covering at least
the life path, expression, soul urge and the current pinnacle themes.
Each body is 1-3 paragraphs in the requested language.
Never mention social media or imply you observed the person."""

    temperature: ClassVar[float] = 0.7
    max_tokens: ClassVar[int | None] = 3072

    def format(self, **kwargs: Any) -> str:
        """Format the prompt.

        Args:
            **kwargs: Must contain 'geometry' and 'language'. May contain
                'display_name'.
        """
        geometry = kwargs.get("geometry")
        language = kwargs.get("language")
        if geometry is None or language is None:
            msg = "Missing required 'geometry' or 'language' argument"
            raise ValueError(msg)
        return orjson.dumps(
            {
                "language": language,
                "profile": {"name": kwargs.get("display_name")},
                "numerology": geometry,
            }
        ).decode()

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        # Extra sections are cut; too few are rejected, never padded.
        sections = data.get("sections")
        if isinstance(sections, list) and len(sections) > MAX_NUMEROLOGY_SECTIONS:
            data["sections"] = sections[:MAX_NUMEROLOGY_SECTIONS]
        return data
