# backend/mentor_sessions/schemas/availability.py
"""
Availability schemas.

Time blocks are expressed as local wall-clock "HH:MM" strings in the
mentor's schedule timezone. Rule conditions and actions are structured
documents; every condition is optional and conditions are AND-combined.
"""

from datetime import date, datetime
from decimal import Decimal
import re
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
import pytz

from ..core.enums import BookingMode, ExceptionKind, TimeBlockKind
from ._strict_base import StrictModel, StrictRequestModel

HHMM_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _validate_hhmm(value: str, field_name: str) -> str:
    value = value.strip()
    if not HHMM_REGEX.fullmatch(value):
        raise ValueError(f"{field_name} must be an HH:MM time")
    return value


class TimeBlockSchema(StrictRequestModel):
    start: str = Field(..., description="Local start time, HH:MM", examples=["09:00"])
    end: str = Field(..., description="Local end time, HH:MM", examples=["17:00"])
    kind: TimeBlockKind = TimeBlockKind.AVAILABLE
    max_concurrent_bookings: int = Field(default=1, ge=1, le=100)

    @field_validator("start", "end")
    @classmethod
    def _check_format(cls, v: str, info) -> str:
        return _validate_hhmm(v, info.field_name)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeBlockSchema":
        if self.start >= self.end:
            raise ValueError("Block start must be before block end")
        return self


class WeeklyPatternUpdate(StrictRequestModel):
    is_enabled: bool = True
    time_blocks: List[TimeBlockSchema] = Field(default_factory=list)


class WeeklyPatternIn(WeeklyPatternUpdate):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")


class ScheduleUpsert(StrictRequestModel):
    """Create or replace a mentor's schedule settings (and optionally its week)."""

    timezone: str = "UTC"
    default_session_duration: int = Field(default=60, gt=0, le=480)
    buffer_minutes: int = Field(default=15, gt=0, le=240)
    min_advance_booking_hours: int = Field(default=24, ge=0, le=24 * 30)
    max_advance_booking_days: int = Field(default=90, gt=0, le=365)
    booking_mode: BookingMode = BookingMode.INSTANT
    is_active: bool = True
    weekly_patterns: Optional[List[WeeklyPatternIn]] = None

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("weekly_patterns")
    @classmethod
    def _unique_days(cls, v: Optional[List[WeeklyPatternIn]]) -> Optional[List[WeeklyPatternIn]]:
        if v is not None:
            days = [pattern.day_of_week for pattern in v]
            if len(days) != len(set(days)):
                raise ValueError("Each day_of_week may appear only once")
        return v


class ExceptionCreate(StrictRequestModel):
    start_date: date
    end_date: date
    kind: ExceptionKind = ExceptionKind.UNAVAILABLE
    is_full_day: bool = True
    time_blocks: Optional[List[TimeBlockSchema]] = None
    reason: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _check_shape(self) -> "ExceptionCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        if self.is_full_day and self.time_blocks:
            raise ValueError("Full-day exceptions cannot carry time blocks")
        if not self.is_full_day and self.time_blocks is None:
            raise ValueError("Partial-day exceptions require time_blocks")
        return self


class TimeRange(StrictRequestModel):
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_format(cls, v: str, info) -> str:
        return _validate_hhmm(v, info.field_name)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if self.start >= self.end:
            raise ValueError("time_range start must be before end")
        return self


class DateRange(StrictRequestModel):
    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("date_range start must be on or before end")
        return self


class RuleConditions(StrictRequestModel):
    days_of_week: Optional[List[int]] = None
    time_range: Optional[TimeRange] = None
    date_range: Optional[DateRange] = None

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is None:
            return v
        if not v:
            raise ValueError("days_of_week cannot be empty; omit it to match every day")
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("days_of_week entries must be between 0 and 6")
        return sorted(set(v))

    @property
    def is_empty(self) -> bool:
        return self.days_of_week is None and self.time_range is None and self.date_range is None


class RuleActions(StrictRequestModel):
    price_multiplier: Optional[Decimal] = Field(default=None, gt=0, le=10)
    max_bookings: Optional[int] = Field(default=None, ge=1, le=100)
    requires_confirmation: Optional[bool] = None


class RuleCreate(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    actions: RuleActions = Field(default_factory=RuleActions)
    priority: Optional[int] = Field(default=None, ge=-1000, le=1000)
    is_active: bool = True


class RuleUpdate(StrictRequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    conditions: Optional[RuleConditions] = None
    actions: Optional[RuleActions] = None
    priority: Optional[int] = Field(default=None, ge=-1000, le=1000)
    is_active: Optional[bool] = None


# Responses


class TimeBlockResponse(StrictModel):
    start: str
    end: str
    kind: TimeBlockKind
    max_concurrent_bookings: int = 1


class WeeklyPatternResponse(StrictModel):
    id: str
    day_of_week: int
    is_enabled: bool
    time_blocks: List[TimeBlockResponse]


class ExceptionResponse(StrictModel):
    id: str
    start_date: date
    end_date: date
    kind: ExceptionKind
    is_full_day: bool
    time_blocks: Optional[List[TimeBlockResponse]] = None
    reason: Optional[str] = None
    created_at: datetime


class RuleResponse(StrictModel):
    id: str
    name: str
    description: Optional[str] = None
    conditions: RuleConditions
    actions: RuleActions
    priority: int
    is_active: bool
    created_at: datetime


class ScheduleResponse(StrictModel):
    id: str
    mentor_id: str
    timezone: str
    default_session_duration: int
    buffer_minutes: int
    min_advance_booking_hours: int
    max_advance_booking_days: int
    booking_mode: BookingMode
    is_active: bool
    weekly_patterns: List[WeeklyPatternResponse] = Field(default_factory=list)
    exceptions: List[ExceptionResponse] = Field(default_factory=list)
    rules: List[RuleResponse] = Field(default_factory=list)
