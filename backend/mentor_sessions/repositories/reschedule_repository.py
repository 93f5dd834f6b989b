"""Repository for reschedule negotiation requests."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import RequestAlreadyActive
from ..models.reschedule_request import ACTIVE_RESCHEDULE_STATUSES, RescheduleRequest
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RescheduleRequestRepository(BaseRepository[RescheduleRequest]):
    def __init__(self, db: Session):
        super().__init__(db, RescheduleRequest)

    def get_active_for_session(self, session_id: str) -> Optional[RescheduleRequest]:
        return (
            self.db.query(RescheduleRequest)
            .filter(
                RescheduleRequest.session_id == session_id,
                RescheduleRequest.status.in_(ACTIVE_RESCHEDULE_STATUSES),
            )
            .first()
        )

    def list_for_session(self, session_id: str) -> List[RescheduleRequest]:
        return self._execute_query(
            self.db.query(RescheduleRequest)
            .filter(RescheduleRequest.session_id == session_id)
            .order_by(RescheduleRequest.created_at, RescheduleRequest.id)
        )

    def create_active(self, **kwargs: Any) -> RescheduleRequest:
        """Insert a pending request; a concurrent active one trips the partial unique index."""
        request = RescheduleRequest(**kwargs)
        self.db.add(request)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.logger.warning(
                "Active reschedule request already exists for session %s", kwargs.get("session_id")
            )
            self.db.rollback()
            raise RequestAlreadyActive(str(kwargs.get("session_id"))) from exc
        return request
