"""Constants for the book library.

Contains:
- Key derivation format
- Storage tables per library
- Redis key prefixes for locks, gate counters and the budget
- Output schema limits for generated narratives
"""

from __future__ import annotations

import re
from typing import Final

from library_service.services.library.models import LibraryKind


# =============================================================================
# Key Derivation
# =============================================================================

# Changing either value invalidates every stored key; bump the schema
# version of the affected engine config instead.
KEY_DELIMITER: Final[str] = "|"
COORDINATE_PRECISION: Final[int] = 6

DEFAULT_NUMEROLOGY_SYSTEM: Final[str] = "pythagorean"


# =============================================================================
# Storage
# =============================================================================

LIBRARY_TABLES: Final[dict[LibraryKind, str]] = {
    LibraryKind.CHART: "astrology_library",
    LibraryKind.NUMEROLOGY: "numerology_library",
}


# =============================================================================
# Redis Keys
# =============================================================================

LOCK_KEY_PREFIX: Final[str] = "library:lock"
RATE_LIMIT_KEY_PREFIX: Final[str] = "ratelimit"
BUDGET_KEY_PREFIX: Final[str] = "llm:budget"


# =============================================================================
# Narrative Output Schemas
# =============================================================================

CHART_SECTION_KEYS: Final[tuple[str, ...]] = (
    "identity",
    "emotions",
    "loveAndRelationships",
    "workAndMoney",
    "purposeAndGrowth",
    "innerWorld",
)

DEEP_DIVE_KEYS: Final[tuple[str, ...]] = (
    "planetaryPlacements",
    "houses",
    "aspects",
    "patterns",
    "energyShape",
    "intensityZones",
    "direction",
    "joy",
)
DEEP_DIVES_FIELD: Final[str] = "deepDives"

MIN_HEADLINE_LENGTH: Final[int] = 10
MIN_SECTION_LENGTH: Final[int] = 50
MIN_DEEP_DIVE_MEANING_LENGTH: Final[int] = 100
MIN_BULLET_LENGTH: Final[int] = 10
DEEP_DIVE_BULLET_COUNT: Final[int] = 3

MIN_NUMEROLOGY_SECTIONS: Final[int] = 4
MAX_NUMEROLOGY_SECTIONS: Final[int] = 7
MIN_NUMEROLOGY_HEADING_LENGTH: Final[int] = 3
MIN_NUMEROLOGY_BODY_LENGTH: Final[int] = 100

# Generated text must not imply the person's social media was observed.
SURVEILLANCE_PATTERNS: Final[tuple[re.Pattern[str], ...]] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bi\s+(saw|noticed|observed|read|found|detected)\b.{0,30}"
        r"(your|their)\s+(post|tweet|content|update|message|comment|caption)",
        r"\b(your|their)\s+social\s+(media|account|profile|presence|feed|timeline)",
        r"\bfrom\s+(what\s+)?i\s+(can\s+)?(see|observe|notice|read|tell)",
        r"\bi['’]ve\s+been\s+(watching|observing|monitoring|tracking|following)",
        r"\byou\s+(posted|shared|tweeted|wrote|said)\b",
        r"\bin\s+your\s+(recent\s+)?(posts?|tweets?|updates?|stories?)",
        r"\bbased\s+on\s+(your|their)\s+(posts?|content|activity)",
        r"\b(facebook|instagram|twitter|tiktok|reddit|x\.com)\b",
        r"\b(fb|ig|insta)\b",
        r"\byour\s+(last|recent|latest)\s+(post|tweet|story|update)",
        r"\bthat\s+(post|tweet|story)\s+(you|where)",
    )
)
