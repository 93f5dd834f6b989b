"""
Append-only audit trail for session cancellations and reschedules.

Rows are written inside the same transaction as the state change they
describe and are never updated or deleted by application code.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy import CheckConstraint, Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import JSONType, UTCDateTime


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for defaults."""
    return datetime.now(timezone.utc)


class SessionAuditLogEntry(Base):
    """Persistence model for session audit entries."""

    __tablename__ = "session_audit_log"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id = Column(
        String(26),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    actor_id = Column(String(26), nullable=True)
    actor_role = Column(String(10), nullable=False)
    action = Column(String(20), nullable=False)
    reason_category = Column(String(40), nullable=True)
    reason_details = Column(Text, nullable=True)
    previous_scheduled_at = Column(UTCDateTime, nullable=True)
    new_scheduled_at = Column(UTCDateTime, nullable=True)
    policy_snapshot = Column(JSONType, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_now_utc)

    session = relationship("MentoringSession", back_populates="audit_entries")

    __table_args__ = (
        CheckConstraint("action IN ('cancel', 'reschedule')", name="ck_session_audit_action"),
        CheckConstraint(
            "actor_role IN ('mentor', 'mentee', 'system')", name="ck_session_audit_actor_role"
        ),
    )

    @classmethod
    def from_change(
        cls,
        *,
        session_id: str,
        action: str,
        actor_id: Optional[str],
        actor_role: str,
        previous_scheduled_at: Optional[datetime],
        new_scheduled_at: Optional[datetime],
        policy_snapshot: Optional[Mapping[str, Any]],
        reason_category: Optional[str] = None,
        reason_details: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> "SessionAuditLogEntry":
        return cls(
            session_id=session_id,
            action=action,
            actor_id=actor_id,
            actor_role=actor_role,
            previous_scheduled_at=previous_scheduled_at,
            new_scheduled_at=new_scheduled_at,
            policy_snapshot=dict(policy_snapshot) if policy_snapshot is not None else None,
            reason_category=reason_category,
            reason_details=reason_details,
            created_at=created_at or _now_utc(),
        )

    def __repr__(self) -> str:
        return f"<SessionAuditLogEntry {self.action} session={self.session_id}>"
