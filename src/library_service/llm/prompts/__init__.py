"""Prompt definitions and output schemas."""

from library_service.llm.prompts.base import BasePrompt
from library_service.llm.prompts.chart_narrative import (
    ChartNarrative,
    ChartNarrativePrompt,
)
from library_service.llm.prompts.numerology_narrative import (
    NumerologyNarrative,
    NumerologyNarrativePrompt,
)
from library_service.llm.prompts.section_deep_dive import (
    SectionDeepDive,
    SectionDeepDivePrompt,
    SectionDeepDives,
)


__all__ = [
    "BasePrompt",
    "ChartNarrative",
    "ChartNarrativePrompt",
    "NumerologyNarrative",
    "NumerologyNarrativePrompt",
    "SectionDeepDive",
    "SectionDeepDivePrompt",
    "SectionDeepDives",
]
