"""Deterministic numerology math.

Example (Pythagorean), AARON DEAN BURLAR born 1992-05-04:
life path 3, birthday 4, expression 1, soul urge 9, personality 1,
maturity 4.
"""

from __future__ import annotations

from library_service.services.numerology.constants import (
    KARMIC_DEBT_NUMBERS,
    LETTER_VALUES,
    MASTER_NUMBERS,
    MAX_SECONDARY_LUCKY_NUMBERS,
    PINNACLE_BASE_AGE,
    PINNACLE_SPAN_YEARS,
    VOWELS,
    NumerologySystem,
)
from library_service.services.numerology.models import (
    Challenges,
    CoreNumbers,
    KarmicDebt,
    KarmicDebtEntry,
    KarmicSource,
    LuckyNumbers,
    NumerologyNumber,
    NumerologyProfile,
    Pinnacle,
    Pinnacles,
)


# =============================================================================
# Reduction
# =============================================================================


def sum_digits(n: int) -> int:
    return sum(int(digit) for digit in str(abs(n)))


def reduce_number(n: int, *, keep_master: bool = True) -> int:
    """Reduce to 1-9, stopping at 11, 22 or 33 when ``keep_master``."""
    n = abs(n)
    while n > 9:
        if keep_master and n in MASTER_NUMBERS:
            return n
        n = sum_digits(n)
    return n


def reduce_with_master(n: int) -> NumerologyNumber:
    """Reduce ``n`` keeping master numbers (29 -> 11, 28 -> 1)."""
    value = reduce_number(n)
    return NumerologyNumber(value=value, is_master=value in MASTER_NUMBERS)


# =============================================================================
# Names and dates
# =============================================================================


def full_name(first: str, middle: str | None, last: str) -> str:
    parts = [first]
    if middle and middle.strip():
        parts.append(middle.strip())
    parts.append(last)
    return " ".join(parts)


def name_value(
    name: str,
    system: NumerologySystem,
    *,
    vowels: bool | None = None,
) -> int:
    """Sum letter values; ``vowels=True``/``False`` restricts to vowels/consonants.

    Non-letters (spaces, hyphens, apostrophes) are ignored.
    """
    values = LETTER_VALUES[system]
    total = 0
    for char in name.upper():
        if char not in values:
            continue
        if vowels is not None and (char in VOWELS) != vowels:
            continue
        total += values[char]
    return total


def _split_date(birth_date: str) -> tuple[int, int, int]:
    year, month, day = (int(part) for part in birth_date.split("-"))
    return year, month, day


def life_path_sum(birth_date: str) -> int:
    """Sum of month, day and year each reduced to a single digit."""
    year, month, day = _split_date(birth_date)
    return (
        reduce_number(month, keep_master=False)
        + reduce_number(day, keep_master=False)
        + reduce_number(year, keep_master=False)
    )


# =============================================================================
# Profile parts
# =============================================================================


def compute_core_numbers(
    first: str,
    middle: str | None,
    last: str,
    birth_date: str,
    system: NumerologySystem,
) -> CoreNumbers:
    name = full_name(first, middle, last)
    _, _, day = _split_date(birth_date)

    life_path = reduce_with_master(life_path_sum(birth_date))
    expression = reduce_with_master(name_value(name, system))

    return CoreNumbers(
        life_path=life_path,
        birthday=reduce_with_master(day),
        expression=expression,
        soul_urge=reduce_with_master(name_value(name, system, vowels=True)),
        personality=reduce_with_master(name_value(name, system, vowels=False)),
        maturity=reduce_with_master(life_path.value + expression.value),
    )


def compute_pinnacles(birth_date: str, life_path: int) -> Pinnacles:
    """Four life periods; the first ends at ``36 - life path``, the next two span nine years."""
    year, month, day = _split_date(birth_date)
    year_r = reduce_number(year, keep_master=False)

    first = reduce_number(month + day, keep_master=False)
    second = reduce_number(day + year_r, keep_master=False)
    third = reduce_number(first + second, keep_master=False)
    fourth = reduce_number(month + year_r, keep_master=False)

    first_end = PINNACLE_BASE_AGE - reduce_number(life_path, keep_master=False)
    second_end = first_end + PINNACLE_SPAN_YEARS
    third_end = second_end + PINNACLE_SPAN_YEARS

    return Pinnacles(
        first=Pinnacle(number=first, start_age=0, end_age=first_end),
        second=Pinnacle(number=second, start_age=first_end, end_age=second_end),
        third=Pinnacle(number=third, start_age=second_end, end_age=third_end),
        fourth=Pinnacle(number=fourth, start_age=third_end, end_age=None),
    )


def compute_challenges(birth_date: str) -> Challenges:
    year, month, day = _split_date(birth_date)
    year_r = reduce_number(year, keep_master=False)
    month_r = reduce_number(month, keep_master=False)
    day_r = reduce_number(day, keep_master=False)

    first = abs(month_r - day_r)
    second = abs(day_r - year_r)
    return Challenges(
        first=first,
        second=second,
        third=abs(first - second),
        fourth=abs(month_r - year_r),
    )


def compute_lucky_numbers(core: CoreNumbers) -> LuckyNumbers:
    """Life path first, then up to three distinct other core values."""
    primary = core.life_path.value
    seen = {primary}
    secondary: list[int] = []
    for candidate in (
        core.expression.value,
        core.soul_urge.value,
        core.birthday.value,
        core.personality.value,
    ):
        if candidate not in seen:
            seen.add(candidate)
            secondary.append(candidate)
    secondary = secondary[:MAX_SECONDARY_LUCKY_NUMBERS]
    return LuckyNumbers(primary=primary, secondary=secondary, all=[primary, *secondary])


def find_karmic_debt(n: int) -> int | None:
    """Return 13/14/16/19 if ``n`` is one or reduces through one."""
    if n in KARMIC_DEBT_NUMBERS:
        return n
    while n > 31:
        n = sum_digits(n)
        if n in KARMIC_DEBT_NUMBERS:
            return n
    return None


def compute_karmic_debt(
    first: str,
    middle: str | None,
    last: str,
    birth_date: str,
    system: NumerologySystem,
) -> KarmicDebt:
    name = full_name(first, middle, last)
    _, _, day = _split_date(birth_date)

    candidates: list[tuple[KarmicSource, int]] = [
        ("lifePath", life_path_sum(birth_date)),
        ("expression", name_value(name, system)),
        ("soulUrge", name_value(name, system, vowels=True)),
        ("personality", name_value(name, system, vowels=False)),
    ]
    entries = [
        KarmicDebtEntry(number=number, source=source)
        for source, total in candidates
        if (number := find_karmic_debt(total)) is not None
    ]
    if day in KARMIC_DEBT_NUMBERS:
        entries.append(KarmicDebtEntry(number=day, source="birthday"))

    return KarmicDebt(
        has_karmic_debt=bool(entries),
        numbers=list(dict.fromkeys(entry.number for entry in entries)),
        sources=entries,
    )


def compute_profile(
    first: str,
    middle: str | None,
    last: str,
    birth_date: str,
    system: NumerologySystem = NumerologySystem.PYTHAGOREAN,
) -> NumerologyProfile:
    """Compute the full profile for a name and ``YYYY-MM-DD`` birth date."""
    core = compute_core_numbers(first, middle, last, birth_date, system)
    return NumerologyProfile(
        system=system.value,
        core_numbers=core,
        pinnacles=compute_pinnacles(birth_date, core.life_path.value),
        challenges=compute_challenges(birth_date),
        lucky_numbers=compute_lucky_numbers(core),
        karmic_debt=compute_karmic_debt(first, middle, last, birth_date, system),
    )
