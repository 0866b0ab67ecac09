"""Unit tests for the key normalizer.

Tests cover:
- Canonical formatting of dates, times and coordinates
- Key determinism and sensitivity to engine config
- Missing and malformed input
- compute_official_key
"""

from __future__ import annotations

import hashlib

import pytest

from library_service.services.library.exceptions import (
    IncompleteInputError,
    InvalidFormatError,
    InvalidRangeError,
)
from library_service.services.library.keys import (
    compute_official_key,
    derive_key,
    format_coordinate,
    key_parts,
    normalize,
    normalize_chart_input,
    normalize_numerology_input,
)
from library_service.services.library.models import (
    ChartEngineConfig,
    LibraryKind,
    NumerologyEngineConfig,
)


pytestmark = pytest.mark.unit


@pytest.fixture
def raw_chart() -> dict[str, object]:
    return {
        "birth_date": "1990-05-15",
        "birth_time": "14:30",
        "birth_lat": 40.7128,
        "birth_lon": -74.006,
        "timezone": "America/New_York",
    }


@pytest.fixture
def raw_numerology() -> dict[str, object]:
    return {
        "first_name": "  aaron ",
        "middle_name": "Dean",
        "last_name": "burlar",
        "birth_date": "1992-05-04",
    }


class TestNormalizeChartInput:
    """Tests for chart input canonicalization."""

    def test_pads_time_and_drops_seconds(self, raw_chart: dict[str, object]) -> None:
        """Should zero-pad the hour and drop seconds."""
        raw_chart["birth_time"] = "9:05:59"

        result = normalize_chart_input(raw_chart)

        assert result.birth_time == "09:05"

    def test_drops_time_from_date(self, raw_chart: dict[str, object]) -> None:
        """Should keep only the date part of an ISO timestamp."""
        raw_chart["birth_date"] = "1990-05-15T00:00:00Z"

        assert normalize_chart_input(raw_chart).birth_date == "1990-05-15"

    def test_rounds_coordinates_to_six_places(self, raw_chart: dict[str, object]) -> None:
        """Should round coordinates to six decimal places."""
        raw_chart["birth_lat"] = 40.71280049
        raw_chart["birth_lon"] = "-74.0060004"

        result = normalize_chart_input(raw_chart)

        assert result.birth_lat == 40.7128
        assert result.birth_lon == -74.006

    def test_keeps_timezone_exactly(self, raw_chart: dict[str, object]) -> None:
        """Should not rewrite the IANA timezone name."""
        raw_chart["timezone"] = "America/Argentina/Buenos_Aires"

        assert normalize_chart_input(raw_chart).timezone == "America/Argentina/Buenos_Aires"

    def test_reports_every_missing_field(self) -> None:
        """Should list all missing fields together."""
        with pytest.raises(IncompleteInputError) as exc_info:
            normalize_chart_input({"birth_date": "1990-05-15", "birth_time": " "})

        assert exc_info.value.missing_fields == [
            "birth_time",
            "birth_lat",
            "birth_lon",
            "timezone",
        ]

    def test_zero_coordinates_are_not_missing(self, raw_chart: dict[str, object]) -> None:
        """Should accept 0.0 as a real coordinate."""
        raw_chart["birth_lat"] = 0.0
        raw_chart["birth_lon"] = 0

        result = normalize_chart_input(raw_chart)

        assert (result.birth_lat, result.birth_lon) == (0.0, 0.0)

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("birth_date", "15/05/1990"),
            ("birth_time", "half past two"),
            ("birth_lat", "north"),
            ("birth_lon", float("nan")),
            ("birth_lat", True),
        ],
    )
    def test_rejects_malformed_values(
        self,
        raw_chart: dict[str, object],
        field: str,
        value: object,
    ) -> None:
        """Should raise InvalidFormatError naming the field."""
        raw_chart[field] = value

        with pytest.raises(InvalidFormatError) as exc_info:
            normalize_chart_input(raw_chart)

        assert exc_info.value.field == field

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("birth_date", "1990-02-30"),
            ("birth_time", "24:00"),
            ("birth_lat", 90.5),
            ("birth_lon", -180.000001),
        ],
    )
    def test_rejects_out_of_range_values(
        self,
        raw_chart: dict[str, object],
        field: str,
        value: object,
    ) -> None:
        """Should raise InvalidRangeError naming the field."""
        raw_chart[field] = value

        with pytest.raises(InvalidRangeError) as exc_info:
            normalize_chart_input(raw_chart)

        assert exc_info.value.field == field

    def test_accepts_boundary_coordinates(self, raw_chart: dict[str, object]) -> None:
        """Should accept the poles and the antimeridian."""
        raw_chart["birth_lat"] = -90
        raw_chart["birth_lon"] = 180

        result = normalize_chart_input(raw_chart)

        assert (result.birth_lat, result.birth_lon) == (-90.0, 180.0)


class TestNormalizeNumerologyInput:
    """Tests for numerology input canonicalization."""

    def test_trims_and_uppercases_names(self, raw_numerology: dict[str, object]) -> None:
        """Should trim and upper-case every name part."""
        result = normalize_numerology_input(raw_numerology)

        assert (result.first_name, result.middle_name, result.last_name) == (
            "AARON",
            "DEAN",
            "BURLAR",
        )

    def test_blank_middle_name_is_none(self, raw_numerology: dict[str, object]) -> None:
        """Should treat a blank middle name as absent."""
        raw_numerology["middle_name"] = "   "

        assert normalize_numerology_input(raw_numerology).middle_name is None

    def test_requires_first_last_and_date(self) -> None:
        """Should report missing first name, last name and birth date."""
        with pytest.raises(IncompleteInputError) as exc_info:
            normalize_numerology_input({"middle_name": "Dean"})

        assert exc_info.value.missing_fields == ["first_name", "last_name", "birth_date"]


class TestFormatCoordinate:
    """Tests for coordinate rendering inside keys."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (40.7128, "40.7128"),
            (-74.006, "-74.006"),
            (40.0, "40"),
            (0.0, "0"),
            (-0.0, "0"),
            (12.345678, "12.345678"),
        ],
    )
    def test_shortest_form(self, value: float, expected: str) -> None:
        """Should render without trailing zeros."""
        assert format_coordinate(value) == expected


class TestDeriveKey:
    """Tests for book key derivation."""

    def test_chart_key_is_sha256_of_joined_fields(
        self, raw_chart: dict[str, object]
    ) -> None:
        """Should hash the pipe-joined chart fields."""
        key = derive_key(normalize_chart_input(raw_chart), ChartEngineConfig())

        expected = hashlib.sha256(
            b"1990-05-15|14:30|40.7128|-74.006|America/New_York|placidus|tropical|8"
        ).hexdigest()
        assert key == expected
        assert len(key) == 64

    def test_equivalent_inputs_share_a_key(self, raw_chart: dict[str, object]) -> None:
        """Should map inputs that normalize identically to one key."""
        variant = {
            **raw_chart,
            "birth_time": "14:30:12",
            "birth_lat": "40.7128001",
            "birth_date": "1990-05-15T08:00:00",
        }
        config = ChartEngineConfig()

        assert derive_key(normalize_chart_input(raw_chart), config) == derive_key(
            normalize_chart_input(variant), config
        )

    def test_different_minute_changes_key(self, raw_chart: dict[str, object]) -> None:
        """Should produce a new key for a different birth minute."""
        config = ChartEngineConfig()
        other = {**raw_chart, "birth_time": "14:31"}

        assert derive_key(normalize_chart_input(raw_chart), config) != derive_key(
            normalize_chart_input(other), config
        )

    @pytest.mark.parametrize(
        "config",
        [
            ChartEngineConfig(schema_version=9),
            ChartEngineConfig(house_system="whole_sign"),
            ChartEngineConfig(zodiac="sidereal"),
        ],
    )
    def test_engine_config_changes_key(
        self,
        raw_chart: dict[str, object],
        config: ChartEngineConfig,
    ) -> None:
        """Should produce a new key when any engine config field changes."""
        normalized = normalize_chart_input(raw_chart)

        assert derive_key(normalized, config) != derive_key(normalized, ChartEngineConfig())

    def test_numerology_default_system_omitted(
        self, raw_numerology: dict[str, object]
    ) -> None:
        """Should leave the default system out of the key fields."""
        parts = key_parts(normalize_numerology_input(raw_numerology), NumerologyEngineConfig())

        assert parts == ["AARON", "DEAN", "BURLAR", "1992-05-04", "1"]

    def test_numerology_other_system_appended(
        self, raw_numerology: dict[str, object]
    ) -> None:
        """Should append a non-default system to the key fields."""
        parts = key_parts(
            normalize_numerology_input(raw_numerology),
            NumerologyEngineConfig(system="chaldean"),
        )

        assert parts[-1] == "chaldean"

    def test_numerology_without_middle_name(
        self, raw_numerology: dict[str, object]
    ) -> None:
        """Should keep an empty slot for a missing middle name."""
        del raw_numerology["middle_name"]

        key = derive_key(normalize_numerology_input(raw_numerology), NumerologyEngineConfig())

        assert key == hashlib.sha256(b"AARON||BURLAR|1992-05-04|1").hexdigest()

    def test_mismatched_config_is_rejected(self, raw_chart: dict[str, object]) -> None:
        """Should refuse to mix chart input with a numerology config."""
        with pytest.raises(TypeError):
            derive_key(normalize_chart_input(raw_chart), NumerologyEngineConfig())


class TestComputeOfficialKey:
    """Tests for key pre-computation from possibly incomplete profiles."""

    def test_returns_key_for_complete_input(self, raw_chart: dict[str, object]) -> None:
        """Should return the same key as normalize + derive."""
        config = ChartEngineConfig()

        key = compute_official_key(LibraryKind.CHART, raw_chart, config)

        assert key == derive_key(normalize(LibraryKind.CHART, raw_chart), config)

    def test_returns_none_for_incomplete_input(self) -> None:
        """Should return None instead of raising."""
        assert (
            compute_official_key(
                LibraryKind.NUMEROLOGY,
                {"first_name": "Aaron"},
                NumerologyEngineConfig(),
            )
            is None
        )

    def test_returns_none_for_invalid_input(self, raw_chart: dict[str, object]) -> None:
        """Should return None for out-of-range input."""
        raw_chart["birth_lat"] = 123

        assert compute_official_key(LibraryKind.CHART, raw_chart, ChartEngineConfig()) is None
