# backend/mentor_sessions/models/session.py
"""
Mentoring session model.

A session is a self-contained commitment between a mentor and a mentee at
an absolute UTC instant. Once it leaves the scheduled state it is immutable
apart from audit annotations; scheduled_at only changes through an accepted
reschedule request.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import ParticipantRole
from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    """Session lifecycle statuses."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class MentoringSession(Base):
    """A booked mentoring session."""

    __tablename__ = "sessions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    mentor_id = Column(String(26), nullable=False, index=True)
    mentee_id = Column(String(26), nullable=False, index=True)

    title = Column(String(200), nullable=True)
    scheduled_at = Column(UTCDateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)

    rate = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    meeting_type = Column(String(20), nullable=True)
    meeting_url = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    requires_confirmation = Column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    mentee_reschedule_count = Column(Integer, nullable=False, default=0, server_default=text("0"))
    mentor_reschedule_count = Column(Integer, nullable=False, default=0, server_default=text("0"))

    # Cancellation tracking
    cancelled_by = Column(String(10), nullable=True)
    cancellation_reason_category = Column(String(40), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    refund_percentage = Column(Integer, nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)

    no_show_marked_by = Column(String(26), nullable=True)
    no_show_marked_at = Column(UTCDateTime, nullable=True)

    started_at = Column(UTCDateTime, nullable=True)
    ended_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=_now_utc)

    reschedule_requests = relationship(
        "RescheduleRequest",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="RescheduleRequest.created_at",
    )
    audit_entries = relationship(
        "SessionAuditLogEntry",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionAuditLogEntry.created_at",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'completed', 'cancelled', 'no_show')",
            name="ck_sessions_status",
        ),
        CheckConstraint("duration_minutes > 0", name="ck_sessions_duration_positive"),
        CheckConstraint("rate >= 0", name="ck_sessions_rate_non_negative"),
        CheckConstraint("mentor_id <> mentee_id", name="ck_sessions_distinct_participants"),
        Index("ix_sessions_mentor_schedule", "mentor_id", "scheduled_at", "status"),
    )

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_scheduled(self) -> bool:
        return self.status == SessionStatus.SCHEDULED

    def role_of(self, user_id: str) -> Optional[ParticipantRole]:
        """Which side of the session a user is on, or None for outsiders."""
        if user_id == self.mentor_id:
            return ParticipantRole.MENTOR
        if user_id == self.mentee_id:
            return ParticipantRole.MENTEE
        return None

    def counterpart_of(self, role: ParticipantRole) -> str:
        return self.mentee_id if role == ParticipantRole.MENTOR else self.mentor_id

    def reschedule_count_for(self, role: ParticipantRole) -> int:
        if role == ParticipantRole.MENTOR:
            return self.mentor_reschedule_count or 0
        return self.mentee_reschedule_count or 0

    def cancel(
        self,
        role: ParticipantRole,
        at: datetime,
        reason_category: Optional[str],
        reason: Optional[str],
        refund_percentage: int,
        refund_amount,
    ) -> None:
        self.status = SessionStatus.CANCELLED.value
        self.cancelled_by = role.value
        self.cancelled_at = at
        self.cancellation_reason_category = reason_category
        self.cancellation_reason = reason
        self.refund_percentage = refund_percentage
        self.refund_amount = refund_amount

    def mark_no_show(self, marked_by: str, at: datetime) -> None:
        self.status = SessionStatus.NO_SHOW.value
        self.no_show_marked_by = marked_by
        self.no_show_marked_at = at

    def move_to(self, new_time: datetime, initiator: ParticipantRole) -> None:
        self.scheduled_at = new_time
        if initiator == ParticipantRole.MENTOR:
            self.mentor_reschedule_count = (self.mentor_reschedule_count or 0) + 1
        else:
            self.mentee_reschedule_count = (self.mentee_reschedule_count or 0) + 1

    def __repr__(self) -> str:
        return f"<MentoringSession {self.id} {self.scheduled_at} {self.status}>"
