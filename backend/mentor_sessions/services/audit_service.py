"""
Session audit trail writer.

Entries are appended inside the caller's transaction so the audit row and
the state change commit or roll back together.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AuditAction
from ..core.exceptions import NotFound
from ..models.session import MentoringSession
from ..models.session_audit_log import SessionAuditLogEntry
from ..repositories.audit_repository import SessionAuditRepository
from .base import BaseService, Clock


class AuditService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None, enabled: Optional[bool] = None):
        super().__init__(db, clock)
        self.repo = SessionAuditRepository(db)
        self.enabled = settings.audit_enabled if enabled is None else enabled

    def _append(self, **fields: Any) -> Optional[SessionAuditLogEntry]:
        if not self.enabled:
            return None
        entry = SessionAuditLogEntry.from_change(created_at=self.now(), **fields)
        return self.repo.append(entry)

    def record_cancellation(
        self,
        session: MentoringSession,
        *,
        actor_id: Optional[str],
        actor_role: str,
        reason_category: Optional[str],
        reason_details: Optional[str],
        policy_snapshot: Mapping[str, Any],
    ) -> Optional[SessionAuditLogEntry]:
        return self._append(
            session_id=session.id,
            action=AuditAction.CANCEL.value,
            actor_id=actor_id,
            actor_role=actor_role,
            reason_category=reason_category,
            reason_details=reason_details,
            previous_scheduled_at=session.scheduled_at,
            new_scheduled_at=None,
            policy_snapshot=policy_snapshot,
        )

    def record_reschedule(
        self,
        session_id: str,
        *,
        actor_id: Optional[str],
        actor_role: str,
        outcome: str,
        previous_scheduled_at: datetime,
        new_scheduled_at: Optional[datetime],
        policy_snapshot: Mapping[str, Any],
        details: Optional[str] = None,
    ) -> Optional[SessionAuditLogEntry]:
        return self._append(
            session_id=session_id,
            action=AuditAction.RESCHEDULE.value,
            actor_id=actor_id,
            actor_role=actor_role,
            reason_category=outcome,
            reason_details=details,
            previous_scheduled_at=previous_scheduled_at,
            new_scheduled_at=new_scheduled_at,
            policy_snapshot=policy_snapshot,
        )

    def list_for_session(self, session_id: str) -> List[SessionAuditLogEntry]:
        if self.db.get(MentoringSession, session_id) is None:
            raise NotFound("Session", session_id)
        return self.repo.list_for_session(session_id)
