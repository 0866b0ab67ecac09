"""Letter tables and special numbers for the numerology engine."""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class NumerologySystem(StrEnum):
    """Letter-to-number mapping."""

    PYTHAGOREAN = "pythagorean"
    CHALDEAN = "chaldean"


# =============================================================================
# Letter Values
# =============================================================================

# A-I = 1-9, J-R = 1-9, S-Z = 1-8
PYTHAGOREAN_VALUES: Final[dict[str, int]] = {
    letter: index % 9 + 1
    for index, letter in enumerate("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
}

# Sound-based table; 9 is never assigned
CHALDEAN_VALUES: Final[dict[str, int]] = {
    "A": 1, "B": 2, "C": 3, "D": 4, "E": 5, "F": 8, "G": 3, "H": 5, "I": 1,
    "J": 1, "K": 2, "L": 3, "M": 4, "N": 5, "O": 7, "P": 8, "Q": 1, "R": 2,
    "S": 3, "T": 4, "U": 6, "V": 6, "W": 6, "X": 5, "Y": 1, "Z": 7,
}  # fmt: skip

LETTER_VALUES: Final[dict[NumerologySystem, dict[str, int]]] = {
    NumerologySystem.PYTHAGOREAN: PYTHAGOREAN_VALUES,
    NumerologySystem.CHALDEAN: CHALDEAN_VALUES,
}

# Y is treated as a consonant
VOWELS: Final[frozenset[str]] = frozenset("AEIOU")


# =============================================================================
# Special Numbers
# =============================================================================

MASTER_NUMBERS: Final[frozenset[int]] = frozenset({11, 22, 33})
KARMIC_DEBT_NUMBERS: Final[frozenset[int]] = frozenset({13, 14, 16, 19})

# First pinnacle ends at 36 minus the single-digit life path
PINNACLE_BASE_AGE: Final[int] = 36
PINNACLE_SPAN_YEARS: Final[int] = 9

MAX_SECONDARY_LUCKY_NUMBERS: Final[int] = 3
