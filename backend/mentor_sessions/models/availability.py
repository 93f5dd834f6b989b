# backend/mentor_sessions/models/availability.py
"""
Availability models for mentors.

A mentor owns exactly one AvailabilitySchedule. The schedule carries the
recurring weekly pattern (one row per day of week), dated exceptions that
supersede the pattern, and priority-ordered rules that adjust capacity,
pricing and confirmation for matching instants.

Time blocks, rule conditions and rule actions are stored as JSON documents
whose shape is validated by the schemas in mentor_sessions.schemas.availability.
"""

from datetime import datetime, timezone
import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import BookingMode
from ..database import Base
from .types import JSONType, UTCDateTime

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilitySchedule(Base):
    """Per-mentor scheduling settings."""

    __tablename__ = "availability_schedules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    mentor_id = Column(String(26), nullable=False, unique=True, index=True)

    timezone = Column(String(64), nullable=False, default="UTC")
    default_session_duration = Column(Integer, nullable=False, default=60)
    buffer_minutes = Column(Integer, nullable=False, default=15)
    min_advance_booking_hours = Column(Integer, nullable=False, default=24)
    max_advance_booking_days = Column(Integer, nullable=False, default=90)
    booking_mode = Column(String(32), nullable=False, default=BookingMode.INSTANT.value)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    # Compare-and-swap token bumped by every committed booking for this mentor
    booking_version = Column(Integer, nullable=False, default=0, server_default=text("0"))

    created_at = Column(UTCDateTime, nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=_now_utc)

    weekly_patterns = relationship(
        "WeeklyPattern",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="WeeklyPattern.day_of_week",
    )
    exceptions = relationship(
        "AvailabilityException",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="AvailabilityException.start_date",
    )
    rules = relationship(
        "AvailabilityRule",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="AvailabilityRule.priority.desc()",
    )

    __table_args__ = (
        CheckConstraint("default_session_duration > 0", name="ck_schedule_duration_positive"),
        CheckConstraint("buffer_minutes > 0", name="ck_schedule_buffer_positive"),
        CheckConstraint("min_advance_booking_hours >= 0", name="ck_schedule_min_advance"),
        CheckConstraint("max_advance_booking_days > 0", name="ck_schedule_max_advance"),
        CheckConstraint(
            "booking_mode IN ('instant', 'requires_confirmation')",
            name="ck_schedule_booking_mode",
        ),
    )

    def pattern_for_day(self, day_of_week: int) -> Optional["WeeklyPattern"]:
        for pattern in self.weekly_patterns:
            if pattern.day_of_week == day_of_week:
                return pattern
        return None

    def __repr__(self) -> str:
        return f"<AvailabilitySchedule mentor={self.mentor_id} tz={self.timezone}>"


class WeeklyPattern(Base):
    """Recurring availability for one day of the week (0 = Sunday)."""

    __tablename__ = "weekly_patterns"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    schedule_id = Column(
        String(26),
        ForeignKey("availability_schedules.id", ondelete="CASCADE"),
        nullable=False,
    )
    day_of_week = Column(Integer, nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    time_blocks = Column(JSONType, nullable=False, default=list)

    created_at = Column(UTCDateTime, nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=_now_utc)

    schedule = relationship("AvailabilitySchedule", back_populates="weekly_patterns")

    __table_args__ = (
        UniqueConstraint("schedule_id", "day_of_week", name="uq_weekly_pattern_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_weekly_pattern_day"),
    )

    def __repr__(self) -> str:
        return f"<WeeklyPattern day={self.day_of_week} blocks={len(self.time_blocks or [])}>"


class AvailabilityException(Base):
    """Dated override of the weekly pattern (inclusive date range)."""

    __tablename__ = "availability_exceptions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    schedule_id = Column(
        String(26),
        ForeignKey("availability_schedules.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    kind = Column(String(32), nullable=False)
    is_full_day = Column(Boolean, nullable=False, default=True)
    time_blocks = Column(JSONType, nullable=True)
    reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=_now_utc)

    schedule = relationship("AvailabilitySchedule", back_populates="exceptions")

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_exception_date_order"),
        Index("ix_availability_exceptions_dates", "schedule_id", "start_date", "end_date"),
    )

    def __repr__(self) -> str:
        return f"<AvailabilityException {self.start_date}..{self.end_date} full={self.is_full_day}>"


class AvailabilityRule(Base):
    """Conditional adjustment of capacity, price or confirmation mode."""

    __tablename__ = "availability_rules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    schedule_id = Column(
        String(26),
        ForeignKey("availability_schedules.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    conditions = Column(JSONType, nullable=False, default=dict)
    actions = Column(JSONType, nullable=False, default=dict)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    created_at = Column(UTCDateTime, nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=_now_utc)

    schedule = relationship("AvailabilitySchedule", back_populates="rules")

    def __repr__(self) -> str:
        return f"<AvailabilityRule {self.name} priority={self.priority}>"
