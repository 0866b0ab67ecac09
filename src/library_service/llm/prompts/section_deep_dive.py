"""Deep-dive sections for a natal chart.

Several sections are requested in one call. Each returned section is
validated on its own: invalid ones are dropped, valid ones kept.
"""

from __future__ import annotations

from typing import Any, ClassVar

import orjson
from pydantic import BaseModel, Field, ValidationError, field_validator

from library_service.llm.exceptions import LLMValidationError
from library_service.observability.logging import get_logger
from library_service.services.library.constants import (
    DEEP_DIVE_BULLET_COUNT,
    DEEP_DIVE_KEYS,
    MIN_BULLET_LENGTH,
    MIN_DEEP_DIVE_MEANING_LENGTH,
)

from .base import BasePrompt, OutputModel, find_surveillance_language, fit_list


logger = get_logger(__name__)


class SectionDeepDive(OutputModel):
    """One topic-specific deep dive."""

    meaning: str = Field(..., min_length=MIN_DEEP_DIVE_MEANING_LENGTH)
    aligned: list[str] = Field(
        ..., min_length=DEEP_DIVE_BULLET_COUNT, max_length=DEEP_DIVE_BULLET_COUNT
    )
    off_course: list[str] = Field(
        ..., min_length=DEEP_DIVE_BULLET_COUNT, max_length=DEEP_DIVE_BULLET_COUNT
    )
    decision_rule: str = Field(..., min_length=MIN_BULLET_LENGTH)

    @field_validator("aligned", "off_course")
    @classmethod
    def _bullets_have_content(cls, items: list[str]) -> list[str]:
        if any(len(item) < MIN_BULLET_LENGTH for item in items):
            msg = f"each item needs at least {MIN_BULLET_LENGTH} characters"
            raise ValueError(msg)
        return items


class SectionDeepDives(OutputModel):
    """Valid sections keyed by section key."""

    sections: dict[str, SectionDeepDive]


class SectionDeepDivePrompt(BasePrompt[SectionDeepDives]):
    """Prompt for a batch of chart deep dives.

    Example output:
        {
            "sections": {
                "houses": {
                    "meaning": "...",
                    "aligned": ["...", "...", "..."],
                    "offCourse": ["...", "...", "..."],
                    "decisionRule": "..."
                }
            }
        }
    """

    output_schema: ClassVar[type[BaseModel]] = SectionDeepDives

    system_prompt: ClassVar[
        str | None
    ] = """You are an astrologer writing focused deep dives on one natal chart.
You receive the chart as JSON and a list of section keys with a description of each.

Return {"sections": {<key>: {...}}} with one entry per requested key. Each entry has:
- meaning: 2-3 paragraphs on what this area of the chart says
- aligned: exactly 3 short signs the person is living this well
- offCourse: exactly 3 short signs they have drifted
- decisionRule: one sentence they can use when choosing

Write in the requested language. Never mention social media or imply you observed the person."""

    temperature: ClassVar[float] = 0.7
    max_tokens: ClassVar[int | None] = 6144

    _descriptions: ClassVar[dict[str, str]] = {
        "planetaryPlacements": "What each planet's sign and house says",
        "houses": "Which life areas are emphasized",
        "aspects": "The main tensions and harmonies between planets",
        "patterns": "Larger chart shapes such as stelliums or grand trines",
        "energyShape": "Element and modality balance",
        "intensityZones": "Where the chart concentrates pressure",
        "direction": "The nodal axis and long-term growth",
        "joy": "What reliably brings delight and ease",
    }

    def format(self, **kwargs: Any) -> str:
        """Format the prompt.

        Args:
            **kwargs: Must contain 'geometry', 'language' and 'section_keys'.
                May contain 'display_name'.

        Raises:
            ValueError: If a required argument is missing or a key is unknown.
        """
        geometry = kwargs.get("geometry")
        language = kwargs.get("language")
        section_keys = kwargs.get("section_keys")
        if geometry is None or language is None or not section_keys:
            msg = "Missing required 'geometry', 'language' or 'section_keys' argument"
            raise ValueError(msg)
        unknown = set(section_keys) - set(DEEP_DIVE_KEYS)
        if unknown:
            msg = f"Unknown section keys: {sorted(unknown)}"
            raise ValueError(msg)

        payload = {
            "language": language,
            "profile": {"name": kwargs.get("display_name")},
            "sections": {key: self._descriptions[key] for key in section_keys},
            "chart": geometry,
        }
        return orjson.dumps(payload).decode()

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        sections = data.get("sections")
        if not isinstance(sections, dict):
            return data
        for section in sections.values():
            if not isinstance(section, dict):
                continue
            for field in ("aligned", "offCourse"):
                items = section.get(field)
                if isinstance(items, list):
                    section[field] = fit_list(items, DEEP_DIVE_BULLET_COUNT)
        return data

    def parse_response(self, raw_response: str) -> SectionDeepDives:
        """Validate each section separately; keep the valid ones.

        Raises:
            LLMValidationError: If the reply is not JSON or no section is valid.
        """
        try:
            data = orjson.loads(raw_response)
        except orjson.JSONDecodeError as e:
            msg = f"{self.name}: response is not valid JSON"
            raise LLMValidationError(msg) from e
        if not isinstance(data, dict) or not isinstance(data.get("sections"), dict):
            msg = f"{self.name}: response has no 'sections' object"
            raise LLMValidationError(msg)

        valid: dict[str, SectionDeepDive] = {}
        for key, section in self.normalize(data)["sections"].items():
            if key not in DEEP_DIVE_KEYS:
                continue
            try:
                parsed = SectionDeepDive.model_validate(section)
            except ValidationError as e:
                logger.info("Dropping invalid deep dive", section=key, errors=e.error_count())
                continue
            if find_surveillance_language(parsed.model_dump()):
                logger.info("Dropping deep dive with surveillance language", section=key)
                continue
            valid[key] = parsed

        if not valid:
            msg = f"{self.name}: no valid sections"
            raise LLMValidationError(msg)
        return SectionDeepDives(sections=valid)
