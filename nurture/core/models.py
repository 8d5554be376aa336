import math
import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.constants import DEFAULT_SKILL, MAX_AGE_MONTHS, MAX_AGE_YEARS, SKILL_VALUES


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_age_field(value) -> int:
    """Form fields arrive as text; the leading whole number counts, blanks and junk are zero."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


class Profile(BaseModel):
    age_years: int = Field(default=0, ge=0, le=MAX_AGE_YEARS)
    age_months: int = Field(default=9, ge=0, le=MAX_AGE_MONTHS)
    skill: str = DEFAULT_SKILL
    special_needs: str = ""

    @field_validator("age_years", "age_months", mode="before")
    @classmethod
    def _coerce_age(cls, value):
        return _parse_age_field(value)

    @field_validator("skill")
    @classmethod
    def _known_skill(cls, value: str) -> str:
        if value not in SKILL_VALUES:
            raise ValueError(f"Unknown skill focus: {value}")
        return value

    @property
    def has_special_needs(self) -> bool:
        return bool(self.special_needs and self.special_needs.strip())


class Activity(BaseModel):
    """One AI-suggested activity. Selection identity is the name."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str
    materials: list[str] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    developmental_benefit: str = Field(alias="developmentalBenefit")


class TimeSlot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time: str
    activity_name: str = Field(alias="activityName")
    description: str


class Plan(BaseModel):
    title: str
    schedule: list[TimeSlot] = Field(default_factory=list)


class TranscriptSource(str, Enum):
    USER = "user"
    MODEL = "model"


class TranscriptEntry(BaseModel):
    id: int
    text: str
    source: TranscriptSource
    is_final: bool = False
