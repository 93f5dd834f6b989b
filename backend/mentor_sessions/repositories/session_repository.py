# backend/mentor_sessions/repositories/session_repository.py
"""
Session Repository

Data access for mentoring sessions, including the occupancy query the
slot resolver and booking flow rely on.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.session import MentoringSession, SessionStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Sessions never run longer than this; bounds the occupancy scan
MAX_SESSION_SPAN = timedelta(hours=24)


class SessionRepository(BaseRepository[MentoringSession]):
    """Repository for mentoring sessions."""

    def __init__(self, db: Session):
        super().__init__(db, MentoringSession)

    def get_occupying(
        self,
        mentor_id: str,
        window_start: datetime,
        window_end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[MentoringSession]:
        """
        Non-cancelled sessions of a mentor that may touch [window_start, window_end).

        Callers apply the exact overlap test (including the buffer).
        """
        query = self.db.query(MentoringSession).filter(
            MentoringSession.mentor_id == mentor_id,
            MentoringSession.status != SessionStatus.CANCELLED.value,
            MentoringSession.scheduled_at < window_end,
            MentoringSession.scheduled_at >= window_start - MAX_SESSION_SPAN,
        )
        if exclude_session_id:
            query = query.filter(MentoringSession.id != exclude_session_id)
        return self._execute_query(query.order_by(MentoringSession.scheduled_at))

    def list_for_participant(
        self, user_id: str, status: Optional[SessionStatus] = None, limit: int = 100
    ) -> List[MentoringSession]:
        query = self.db.query(MentoringSession).filter(
            (MentoringSession.mentor_id == user_id) | (MentoringSession.mentee_id == user_id)
        )
        if status is not None:
            query = query.filter(MentoringSession.status == status.value)
        return self._execute_query(query.order_by(MentoringSession.scheduled_at).limit(limit))
