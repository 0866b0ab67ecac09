"""Key Normalizer.

Turns raw profile fields into a canonical input and derives the book key
from it. Everything here is pure: no I/O, no clock, no defaults for
missing data.

Key strings (joined with ``|`` and hashed with SHA-256):

- chart: ``birth_date|birth_time|lat|lon|timezone|house_system|zodiac|schema_version``
- numerology: ``FIRST|MIDDLE|LAST|birth_date|config_version[|system]``
"""

from __future__ import annotations

import hashlib
import math
import re
from datetime import date
from typing import TYPE_CHECKING, Any

from library_service.services.library.constants import (
    COORDINATE_PRECISION,
    DEFAULT_NUMEROLOGY_SYSTEM,
    KEY_DELIMITER,
)
from library_service.services.library.exceptions import (
    IncompleteInputError,
    InvalidFormatError,
    InvalidInputError,
    InvalidRangeError,
)
from library_service.services.library.models import (
    ChartEngineConfig,
    ChartInput,
    LibraryKind,
    NumerologyEngineConfig,
    NumerologyInput,
)


if TYPE_CHECKING:
    from collections.abc import Mapping

    from library_service.services.library.models import EngineConfig, NormalizedInput


_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})")

CHART_REQUIRED_FIELDS = ("birth_date", "birth_time", "birth_lat", "birth_lon", "timezone")
NUMEROLOGY_REQUIRED_FIELDS = ("first_name", "last_name", "birth_date")


# =============================================================================
# Field normalizers
# =============================================================================


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(raw: Mapping[str, Any], fields: tuple[str, ...]) -> None:
    missing = [name for name in fields if _is_missing(raw.get(name))]
    if missing:
        raise IncompleteInputError(missing)


def normalize_date(value: Any, field: str = "birth_date") -> str:
    """Return ``YYYY-MM-DD``; a trailing time component is dropped."""
    match = _DATE_RE.match(str(value).strip())
    if match is None:
        raise InvalidFormatError(field, value)
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day).isoformat()
    except ValueError as e:
        raise InvalidRangeError(field, value) from e


def normalize_time(value: Any, field: str = "birth_time") -> str:
    """Return zero-padded ``HH:MM``; seconds are dropped."""
    match = _TIME_RE.match(str(value).strip())
    if match is None:
        raise InvalidFormatError(field, value)
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidRangeError(field, value)
    return f"{hour:02d}:{minute:02d}"


def normalize_coordinate(value: Any, field: str, limit: float) -> float:
    """Round to six places, then check ``-limit <= value <= limit``."""
    if isinstance(value, bool):
        raise InvalidFormatError(field, value)
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidFormatError(field, value) from e
    if not math.isfinite(number):
        raise InvalidFormatError(field, value)

    rounded = round(number, COORDINATE_PRECISION)
    if not -limit <= rounded <= limit:
        raise InvalidRangeError(field, value)
    return rounded + 0.0  # -0.0 -> 0.0


def normalize_name(value: Any) -> str:
    return str(value).strip().upper()


def format_coordinate(value: float) -> str:
    """Render a coordinate in shortest decimal form (``40.7128``, ``-74.006``, ``40``)."""
    text = format(value, f".{COORDINATE_PRECISION}f").rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


# =============================================================================
# Normalization
# =============================================================================


def normalize_chart_input(raw: Mapping[str, Any]) -> ChartInput:
    """Canonicalize raw birth data.

    Raises:
        IncompleteInputError: If any required field is missing (all listed).
        InvalidFormatError: If a date, time or coordinate cannot be parsed.
        InvalidRangeError: If a value parses but is out of range.
    """
    _require(raw, CHART_REQUIRED_FIELDS)
    return ChartInput(
        birth_date=normalize_date(raw["birth_date"]),
        birth_time=normalize_time(raw["birth_time"]),
        birth_lat=normalize_coordinate(raw["birth_lat"], "birth_lat", 90.0),
        birth_lon=normalize_coordinate(raw["birth_lon"], "birth_lon", 180.0),
        timezone=str(raw["timezone"]).strip(),
    )


def normalize_numerology_input(raw: Mapping[str, Any]) -> NumerologyInput:
    """Canonicalize a full name and birth date. The middle name is optional."""
    _require(raw, NUMEROLOGY_REQUIRED_FIELDS)
    middle = raw.get("middle_name")
    return NumerologyInput(
        first_name=normalize_name(raw["first_name"]),
        middle_name=None if _is_missing(middle) else normalize_name(middle),
        last_name=normalize_name(raw["last_name"]),
        birth_date=normalize_date(raw["birth_date"]),
    )


def normalize(library: LibraryKind, raw: Mapping[str, Any]) -> NormalizedInput:
    if library is LibraryKind.CHART:
        return normalize_chart_input(raw)
    return normalize_numerology_input(raw)


# =============================================================================
# Key derivation
# =============================================================================


def key_parts(normalized: NormalizedInput, engine_config: EngineConfig) -> list[str]:
    """Return the ordered key fields for an input/config pair."""
    if isinstance(normalized, ChartInput):
        if not isinstance(engine_config, ChartEngineConfig):
            msg = "Chart input requires a ChartEngineConfig"
            raise TypeError(msg)
        return [
            normalized.birth_date,
            normalized.birth_time,
            format_coordinate(normalized.birth_lat),
            format_coordinate(normalized.birth_lon),
            normalized.timezone,
            engine_config.house_system,
            engine_config.zodiac,
            str(engine_config.schema_version),
        ]

    if not isinstance(engine_config, NumerologyEngineConfig):
        msg = "Numerology input requires a NumerologyEngineConfig"
        raise TypeError(msg)
    parts = [
        normalized.first_name,
        normalized.middle_name or "",
        normalized.last_name,
        normalized.birth_date,
        str(engine_config.config_version),
    ]
    # Default-system keys predate the system field; keep them stable.
    if engine_config.system != DEFAULT_NUMEROLOGY_SYSTEM:
        parts.append(engine_config.system)
    return parts


def derive_key(normalized: NormalizedInput, engine_config: EngineConfig) -> str:
    """Hash the key fields into a 64-character hex book key."""
    payload = KEY_DELIMITER.join(key_parts(normalized, engine_config))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def compute_official_key(
    library: LibraryKind,
    raw: Mapping[str, Any],
    engine_config: EngineConfig,
) -> str | None:
    """Like ``derive_key(normalize(raw))`` but returns None for unusable input.

    Used to pre-compute a profile's key when the profile may still be
    incomplete.
    """
    try:
        return derive_key(normalize(library, raw), engine_config)
    except InvalidInputError:
        return None
