"""Repository for the append-only session audit log."""

from __future__ import annotations

from typing import List

from sqlalchemy.orm import Session

from ..models.session_audit_log import SessionAuditLogEntry
from .base_repository import BaseRepository


class SessionAuditRepository(BaseRepository[SessionAuditLogEntry]):
    def __init__(self, db: Session):
        super().__init__(db, SessionAuditLogEntry)

    def append(self, entry: SessionAuditLogEntry) -> SessionAuditLogEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_for_session(self, session_id: str) -> List[SessionAuditLogEntry]:
        return self._execute_query(
            self.db.query(SessionAuditLogEntry)
            .filter(SessionAuditLogEntry.session_id == session_id)
            .order_by(SessionAuditLogEntry.created_at, SessionAuditLogEntry.id)
        )
