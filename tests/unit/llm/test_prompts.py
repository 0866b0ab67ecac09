"""Unit tests for narrative prompts.

Tests cover:
- Prompt formatting and required arguments
- Output schema validation
- List normalization (pad, truncate)
- Surveillance-language rejection
- Per-section validation for deep dives
"""

from __future__ import annotations

import orjson
import pytest

from library_service.llm.exceptions import LLMValidationError
from library_service.llm.prompts import (
    ChartNarrativePrompt,
    NumerologyNarrativePrompt,
    SectionDeepDivePrompt,
)
from library_service.llm.prompts.base import find_surveillance_language, fit_list
from tests.fixtures.narratives import (
    as_json,
    chart_narrative,
    deep_dive_section,
    numerology_narrative,
)


pytestmark = pytest.mark.unit


class TestFitList:
    """Tests for list cardinality normalization."""

    def test_truncates(self) -> None:
        """Should keep the first items."""
        assert fit_list([1, 2, 3, 4], 3) == [1, 2, 3]

    def test_pads_by_cycling(self) -> None:
        """Should repeat existing items to reach the size."""
        assert fit_list(["a", "b"], 3) == ["a", "b", "a"]

    def test_empty_is_unchanged(self) -> None:
        """Should not invent items."""
        assert fit_list([], 3) == []


class TestSurveillanceLanguage:
    """Tests for banned phrasing detection."""

    @pytest.mark.parametrize(
        "text",
        [
            "I noticed in your recent posts that you travel a lot.",
            "Your social media shows a love of art.",
            "You posted about your new job.",
            "Your Instagram is full of sunsets.",
        ],
    )
    def test_detects_phrases(self, text: str) -> None:
        """Should flag text implying observation."""
        assert find_surveillance_language({"nested": [text]})

    def test_clean_text(self) -> None:
        """Should not flag ordinary readings."""
        assert find_surveillance_language({"body": "You value steady routines."}) == []


class TestChartNarrativePrompt:
    """Tests for the natal chart narrative prompt."""

    def test_format_includes_chart_and_language(self) -> None:
        """Should send the geometry, language and display name as JSON."""
        prompt = ChartNarrativePrompt()

        payload = orjson.loads(
            prompt.format(geometry={"sun": "taurus"}, language="fr", display_name="Ada")
        )

        assert payload["language"] == "fr"
        assert payload["chart"] == {"sun": "taurus"}
        assert payload["profile"] == {"name": "Ada", "zodiacSign": None}

    def test_format_includes_sign_and_birth_place(self) -> None:
        """Should send the zodiac sign and birth place alongside the chart."""
        payload = orjson.loads(
            ChartNarrativePrompt().format(
                geometry={"sun": "taurus"},
                language="en",
                zodiac_sign="Taurus",
                birth_city="Lisbon",
                birth_region="Lisboa",
                birth_country="PT",
            )
        )

        assert payload["profile"]["zodiacSign"] == "Taurus"
        assert payload["birthPlace"] == {
            "city": "Lisbon",
            "region": "Lisboa",
            "country": "PT",
        }

    def test_format_requires_geometry(self) -> None:
        """Should raise ValueError when geometry is missing."""
        with pytest.raises(ValueError, match="geometry"):
            ChartNarrativePrompt().format(language="en")

    def test_options(self) -> None:
        """Should expose temperature and token limit."""
        assert ChartNarrativePrompt().get_options() == {"temperature": 0.7, "max_tokens": 4096}

    def test_parses_valid_response(self) -> None:
        """Should validate and round-trip a complete narrative."""
        parsed = ChartNarrativePrompt().parse_response(as_json(chart_narrative()))

        dumped = parsed.model_dump(mode="json", by_alias=True)
        assert dumped["sections"]["loveAndRelationships"].startswith("This placement")
        assert dumped["coreSummary"]["bigThree"]["rising"] == "Leo rising"

    def test_rejects_missing_section(self) -> None:
        """Should reject a narrative missing a required section."""
        narrative = chart_narrative()
        del narrative["sections"]["innerWorld"]

        with pytest.raises(LLMValidationError):
            ChartNarrativePrompt().parse_response(as_json(narrative))

    def test_rejects_short_headline(self) -> None:
        """Should enforce the headline minimum length."""
        narrative = chart_narrative()
        narrative["coreSummary"]["headline"] = "Short"

        with pytest.raises(LLMValidationError):
            ChartNarrativePrompt().parse_response(as_json(narrative))

    def test_rejects_non_json(self) -> None:
        """Should reject a reply that is not JSON."""
        with pytest.raises(LLMValidationError, match="not valid JSON"):
            ChartNarrativePrompt().parse_response("Here is your reading!")

    def test_rejects_json_array(self) -> None:
        """Should reject a reply that is not an object."""
        with pytest.raises(LLMValidationError, match="not a JSON object"):
            ChartNarrativePrompt().parse_response("[]")

    def test_rejects_surveillance_language(self) -> None:
        """Should reject a narrative that mentions social media."""
        narrative = chart_narrative()
        narrative["sections"]["workAndMoney"] = (
            "From what I can see on your feed, work is where you come alive and "
            "where you feel most like yourself."
        )

        with pytest.raises(LLMValidationError, match="surveillance"):
            ChartNarrativePrompt().parse_response(as_json(narrative))


class TestSectionDeepDivePrompt:
    """Tests for batched deep-dive sections."""

    def test_format_lists_requested_sections(self) -> None:
        """Should describe only the requested sections."""
        payload = orjson.loads(
            SectionDeepDivePrompt().format(
                geometry={}, language="en", section_keys=["houses", "joy"]
            )
        )

        assert list(payload["sections"]) == ["houses", "joy"]

    def test_format_rejects_unknown_section(self) -> None:
        """Should refuse section keys it has no description for."""
        with pytest.raises(ValueError, match="Unknown section keys"):
            SectionDeepDivePrompt().format(geometry={}, language="en", section_keys=["tarot"])

    def test_format_requires_section_keys(self) -> None:
        """Should refuse an empty section list."""
        with pytest.raises(ValueError):
            SectionDeepDivePrompt().format(geometry={}, language="en", section_keys=[])

    def test_keeps_valid_drops_invalid(self) -> None:
        """Should keep valid sections and drop the rest."""
        broken = deep_dive_section()
        broken["meaning"] = "Too short."
        reply = {"sections": {"houses": deep_dive_section(), "aspects": broken}}

        parsed = SectionDeepDivePrompt().parse_response(as_json(reply))

        assert set(parsed.sections) == {"houses"}

    def test_pads_and_truncates_bullets(self) -> None:
        """Should fit aligned and offCourse to exactly three items."""
        section = deep_dive_section()
        section["aligned"] = section["aligned"][:2]
        section["offCourse"] = [*section["offCourse"], "Ignores their own early warnings"]

        parsed = SectionDeepDivePrompt().parse_response(
            as_json({"sections": {"joy": section}})
        )

        joy = parsed.sections["joy"]
        assert len(joy.aligned) == 3
        assert joy.aligned[2] == joy.aligned[0]
        assert len(joy.off_course) == 3

    def test_rejects_short_bullets(self) -> None:
        """Should drop sections whose bullets are too short."""
        section = deep_dive_section()
        section["aligned"] = ["ok", "fine", "yes"]

        with pytest.raises(LLMValidationError, match="no valid sections"):
            SectionDeepDivePrompt().parse_response(as_json({"sections": {"joy": section}}))

    def test_ignores_unknown_keys(self) -> None:
        """Should not return sections that were never defined."""
        reply = {"sections": {"houses": deep_dive_section(), "tarot": deep_dive_section()}}

        parsed = SectionDeepDivePrompt().parse_response(as_json(reply))

        assert set(parsed.sections) == {"houses"}

    def test_drops_surveillance_section(self) -> None:
        """Should drop only the section with surveillance language."""
        flagged = deep_dive_section()
        flagged["decisionRule"] = "Ask what your last post would say about it."
        reply = {"sections": {"houses": deep_dive_section(), "joy": flagged}}

        parsed = SectionDeepDivePrompt().parse_response(as_json(reply))

        assert set(parsed.sections) == {"houses"}

    def test_requires_sections_object(self) -> None:
        """Should reject a reply without a sections object."""
        with pytest.raises(LLMValidationError):
            SectionDeepDivePrompt().parse_response(as_json({"houses": deep_dive_section()}))


class TestNumerologyNarrativePrompt:
    """Tests for the numerology narrative prompt."""

    def test_format_sends_profile(self) -> None:
        """Should send the profile under 'numerology'."""
        payload = orjson.loads(
            NumerologyNarrativePrompt().format(geometry={"system": "pythagorean"}, language="en")
        )

        assert payload["numerology"] == {"system": "pythagorean"}

    def test_accepts_four_to_seven_sections(self) -> None:
        """Should accept the allowed section counts."""
        prompt = NumerologyNarrativePrompt()

        assert len(prompt.parse_response(as_json(numerology_narrative(4))).sections) == 4
        assert len(prompt.parse_response(as_json(numerology_narrative(7))).sections) == 7

    def test_truncates_extra_sections(self) -> None:
        """Should keep only the first seven sections."""
        parsed = NumerologyNarrativePrompt().parse_response(as_json(numerology_narrative(9)))

        assert [s.heading for s in parsed.sections][-1] == "Theme 7"

    def test_rejects_too_few_sections(self) -> None:
        """Should not pad a short reply."""
        with pytest.raises(LLMValidationError):
            NumerologyNarrativePrompt().parse_response(as_json(numerology_narrative(3)))

    def test_rejects_short_body(self) -> None:
        """Should enforce the body minimum length."""
        narrative = numerology_narrative(4)
        narrative["sections"][0]["body"] = "Brief."

        with pytest.raises(LLMValidationError):
            NumerologyNarrativePrompt().parse_response(as_json(narrative))
