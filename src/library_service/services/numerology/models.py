"""Numerology profile models.

Serialized with camelCase aliases; the dumped profile is the geometry
payload stored in ``numerology_library``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _ProfileModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        serialize_by_alias=True,
        frozen=True,
    )


class NumerologyNumber(_ProfileModel):
    """A reduced number; master numbers (11, 22, 33) are kept unreduced."""

    value: int
    is_master: bool = False


class CoreNumbers(_ProfileModel):
    life_path: NumerologyNumber
    birthday: NumerologyNumber
    expression: NumerologyNumber
    soul_urge: NumerologyNumber
    personality: NumerologyNumber
    maturity: NumerologyNumber


class Pinnacle(_ProfileModel):
    number: int
    start_age: int
    end_age: int | None = None


class Pinnacles(_ProfileModel):
    first: Pinnacle
    second: Pinnacle
    third: Pinnacle
    fourth: Pinnacle


class Challenges(_ProfileModel):
    first: int
    second: int
    third: int
    fourth: int


class LuckyNumbers(_ProfileModel):
    primary: int
    secondary: list[int]
    all: list[int]


KarmicSource = Literal["lifePath", "expression", "soulUrge", "personality", "birthday"]


class KarmicDebtEntry(_ProfileModel):
    number: int
    source: KarmicSource


class KarmicDebt(_ProfileModel):
    has_karmic_debt: bool
    numbers: list[int]
    sources: list[KarmicDebtEntry]


class NumerologyProfile(_ProfileModel):
    """Complete deterministic profile for one name and birth date."""

    system: str
    core_numbers: CoreNumbers
    pinnacles: Pinnacles
    challenges: Challenges
    lucky_numbers: LuckyNumbers
    karmic_debt: KarmicDebt
