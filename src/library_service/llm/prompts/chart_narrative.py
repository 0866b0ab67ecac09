"""Natal chart narrative prompt.

The whole chart geometry goes to the model as JSON; the reply is a fixed
set of narrative sections.
"""

from __future__ import annotations

from typing import Any, ClassVar

import orjson
from pydantic import BaseModel, Field

from library_service.services.library.constants import (
    MIN_HEADLINE_LENGTH,
    MIN_SECTION_LENGTH,
)

from .base import BasePrompt, OutputModel


class NarrativeMeta(OutputModel):
    mode: str = "natal_full_profile"
    language: str = Field(..., min_length=2)


class BigThree(OutputModel):
    sun: str = Field(..., min_length=1)
    moon: str = Field(..., min_length=1)
    rising: str = Field(..., min_length=1)


class CoreSummary(OutputModel):
    headline: str = Field(..., min_length=MIN_HEADLINE_LENGTH)
    overall_vibe: str = Field(..., min_length=MIN_SECTION_LENGTH)
    big_three: BigThree


class ChartSections(OutputModel):
    identity: str = Field(..., min_length=MIN_SECTION_LENGTH)
    emotions: str = Field(..., min_length=MIN_SECTION_LENGTH)
    love_and_relationships: str = Field(..., min_length=MIN_SECTION_LENGTH)
    work_and_money: str = Field(..., min_length=MIN_SECTION_LENGTH)
    purpose_and_growth: str = Field(..., min_length=MIN_SECTION_LENGTH)
    inner_world: str = Field(..., min_length=MIN_SECTION_LENGTH)


class ChartNarrative(OutputModel):
    """Output schema for a full natal chart reading."""

    meta: NarrativeMeta
    core_summary: CoreSummary
    sections: ChartSections


class ChartNarrativePrompt(BasePrompt[ChartNarrative]):
    """Prompt for a full natal chart reading.

    Example output (abridged):
        {
            "meta": {"mode": "natal_full_profile", "language": "en"},
            "coreSummary": {
                "headline": "A steady builder with a restless heart",
                "overallVibe": "...",
                "bigThree": {"sun": "...", "moon": "...", "rising": "..."}
            },
            "sections": {"identity": "...", "emotions": "...", ...}
        }
    """

    output_schema: ClassVar[type[BaseModel]] = ChartNarrative

    system_prompt: ClassVar[
        str | None
    ] = """You are a warm, grounded astrologer writing a natal chart reading.
You receive the computed chart as JSON. Interpret only what is in it; never invent placements.

Return a JSON object with exactly these keys:
- meta: {"mode": "natal_full_profile", "language": <language code>}
- coreSummary: {"headline", "overallVibe", "bigThree": {"sun", "moon", "rising"}}
- sections: {"identity", "emotions", "loveAndRelationships", "workAndMoney",
  "purposeAndGrowth", "innerWorld"}

Rules:
1. Write every text value in the requested language
2. headline is one sentence; overallVibe and every section are 2-4 full paragraphs
3. Address the reader as "you"; use their name at most once
4. Never mention social media, posts, or anything implying you observed the person"""

    temperature: ClassVar[float] = 0.7
    max_tokens: ClassVar[int | None] = 4096

    def format(self, **kwargs: Any) -> str:
        """Format the prompt.

        Args:
            **kwargs: Must contain 'geometry' and 'language'. May contain
                'display_name', 'zodiac_sign', 'birth_city', 'birth_region'
                and 'birth_country'.

        Raises:
            ValueError: If 'geometry' or 'language' is missing.
        """
        geometry = kwargs.get("geometry")
        language = kwargs.get("language")
        if geometry is None or language is None:
            msg = "Missing required 'geometry' or 'language' argument"
            raise ValueError(msg)

        payload = {
            "mode": "natal_full_profile",
            "language": language,
            "profile": {
                "name": kwargs.get("display_name"),
                "zodiacSign": kwargs.get("zodiac_sign"),
            },
            "birthPlace": {
                "city": kwargs.get("birth_city"),
                "region": kwargs.get("birth_region"),
                "country": kwargs.get("birth_country"),
            },
            "chart": geometry,
        }
        return orjson.dumps(payload).decode()
