from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import AccountKind, CategoryDirection, Direction, OccurrenceStatus
from months import validate_month
from values import parse_amount, parse_optional_amount


class DurationMode(str, Enum):
    infinite = "infinite"
    fixed_months = "fixed_months"
    until_month = "until_month"


class Scope(str, Enum):
    single = "single"
    future = "future"
    all = "all"
    range = "range"


class PropagationMode(str, Enum):
    update = "update"
    delete = "delete"


def _month_or_none(value: Optional[str]) -> Optional[str]:
    if value in (None, ""):
        return None
    return validate_month(value)


class OccurrenceIn(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=128)
    direction: Direction
    description: str = Field(..., min_length=1, max_length=200)
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    planned_amount: float = Field(default=0.0, ge=0)
    actual_amount: float = Field(default=0.0, ge=0)
    competence_month: str
    status: OccurrenceStatus = OccurrenceStatus.planned
    is_recurring: bool = False
    series_id: Optional[str] = None
    series_start_month: Optional[str] = None
    series_end_month: Optional[str] = None

    @field_validator("planned_amount", "actual_amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> float:
        return parse_amount(value)

    @field_validator("competence_month")
    @classmethod
    def _check_month(cls, value: str) -> str:
        return validate_month(value)

    @field_validator("series_start_month", "series_end_month")
    @classmethod
    def _check_series_month(cls, value: Optional[str]) -> Optional[str]:
        return _month_or_none(value)


class OccurrenceOut(OccurrenceIn):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OccurrenceEdit(BaseModel):
    """Field delta applied by propagation; only explicitly set fields travel."""

    model_config = ConfigDict(extra="forbid")

    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    planned_amount: Optional[float] = Field(default=None, ge=0)
    actual_amount: Optional[float] = Field(default=None, ge=0)
    account_id: Optional[str] = None
    category_id: Optional[str] = None

    @field_validator("planned_amount", "actual_amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Optional[float]:
        return parse_optional_amount(value)

    def delta(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class SeriesFields(BaseModel):
    direction: Direction
    description: str = Field(..., min_length=1, max_length=200)
    planned_amount: float = Field(..., ge=0)
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    series_start_month: str

    @field_validator("planned_amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> float:
        return parse_amount(value)

    @field_validator("series_start_month")
    @classmethod
    def _check_month(cls, value: str) -> str:
        return validate_month(value)


class SeriesTemplate(SeriesFields):
    owner_id: str = Field(..., min_length=1, max_length=128)


class SeriesRequest(SeriesFields):
    """Series definition as posted; the owner comes from the caller."""

    duration: DurationMode = DurationMode.infinite
    fixed_months: Optional[int] = None
    series_end_month: Optional[str] = None

    @field_validator("series_end_month")
    @classmethod
    def _check_end(cls, value: Optional[str]) -> Optional[str]:
        return _month_or_none(value)

    @model_validator(mode="after")
    def _check_duration(self) -> "SeriesRequest":
        if self.duration == DurationMode.fixed_months and self.fixed_months is None:
            raise ValueError("fixed_months duration requires a month count")
        if self.duration == DurationMode.until_month and not self.series_end_month:
            raise ValueError("until_month duration requires series_end_month")
        return self


class SeriesIn(SeriesTemplate, SeriesRequest):
    pass


class MatchCandidate(BaseModel):
    description: str
    direction: Direction
    competence_month: str

    @field_validator("competence_month")
    @classmethod
    def _check_month(cls, value: str) -> str:
        return validate_month(value)


class MatchSuggestion(BaseModel):
    occurrence_id: str
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    planned_amount: float = 0.0


class RealizedEntryRequest(MatchCandidate):
    description: str = Field(..., min_length=1, max_length=200)
    actual_amount: float = Field(..., ge=0)
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    is_recurring: bool = False

    @field_validator("actual_amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> float:
        return parse_amount(value)


class RealizedEntryIn(RealizedEntryRequest):
    owner_id: str = Field(..., min_length=1, max_length=128)


class SettleResult(BaseModel):
    occurrence_id: str
    settled: bool


class PropagationIn(BaseModel):
    edits: OccurrenceEdit = Field(default_factory=OccurrenceEdit)
    month_from: Optional[str] = None
    month_to: Optional[str] = None

    @field_validator("month_from", "month_to")
    @classmethod
    def _check_month(cls, value: Optional[str]) -> Optional[str]:
        return _month_or_none(value)


class AccountIn(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    kind: AccountKind = AccountKind.checking
    active: bool = True


class AccountOut(AccountIn):
    model_config = ConfigDict(from_attributes=True)

    id: str


class CategoryIn(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    direction: CategoryDirection


class CategoryOut(CategoryIn):
    model_config = ConfigDict(from_attributes=True)

    id: str
