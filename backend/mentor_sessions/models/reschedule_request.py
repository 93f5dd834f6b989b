"""Reschedule negotiation requests attached to a session."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import ParticipantRole
from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class RescheduleStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTER_PROPOSED = "counter_proposed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


ACTIVE_RESCHEDULE_STATUSES = (
    RescheduleStatus.PENDING.value,
    RescheduleStatus.COUNTER_PROPOSED.value,
)

_ACTIVE_WHERE = text("status IN ('pending', 'counter_proposed')")


class RescheduleRequest(Base):
    """One negotiation over moving a session to a new time."""

    __tablename__ = "reschedule_requests"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id = Column(
        String(26),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    initiated_by = Column(String(10), nullable=False)
    initiator_id = Column(String(26), nullable=False)
    status = Column(String(20), nullable=False, default=RescheduleStatus.PENDING.value)

    original_time = Column(UTCDateTime, nullable=False)
    proposed_time = Column(UTCDateTime, nullable=False)
    proposed_duration = Column(Integer, nullable=True)

    counter_proposed_time = Column(UTCDateTime, nullable=True)
    counter_proposed_by = Column(String(10), nullable=True)
    counter_proposal_count = Column(Integer, nullable=False, default=0, server_default=text("0"))

    expires_at = Column(UTCDateTime, nullable=False)

    resolved_by = Column(String(10), nullable=True)
    resolver_id = Column(String(26), nullable=True)
    resolved_at = Column(UTCDateTime, nullable=True)
    resolution_note = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=_now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=_now_utc)

    session = relationship("MentoringSession", back_populates="reschedule_requests")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'counter_proposed', "
            "'cancelled', 'expired')",
            name="ck_reschedule_requests_status",
        ),
        CheckConstraint("initiated_by IN ('mentor', 'mentee')", name="ck_reschedule_initiator"),
        CheckConstraint("counter_proposal_count >= 0", name="ck_reschedule_counter_count"),
        # At most one active request per session
        Index(
            "uq_reschedule_requests_active_session",
            "session_id",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_RESCHEDULE_STATUSES

    @property
    def initiator_role(self) -> ParticipantRole:
        return ParticipantRole(self.initiated_by)

    @property
    def current_proposer(self) -> ParticipantRole:
        """Role whose proposal is on the table."""
        if self.status == RescheduleStatus.COUNTER_PROPOSED and self.counter_proposed_by:
            return ParticipantRole(self.counter_proposed_by)
        return self.initiator_role

    @property
    def responder(self) -> ParticipantRole:
        if self.current_proposer == ParticipantRole.MENTOR:
            return ParticipantRole.MENTEE
        return ParticipantRole.MENTOR

    def is_expired_at(self, now: datetime) -> bool:
        return self.is_active and now > self.expires_at

    def resolve(
        self,
        status: RescheduleStatus,
        role: Optional[ParticipantRole],
        resolver_id: Optional[str],
        at: datetime,
        note: Optional[str] = None,
    ) -> None:
        self.status = status.value
        self.resolved_by = role.value if role else None
        self.resolver_id = resolver_id
        self.resolved_at = at
        if note:
            self.resolution_note = note

    def __repr__(self) -> str:
        return f"<RescheduleRequest session={self.session_id} status={self.status}>"
