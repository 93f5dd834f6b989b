# backend/mentor_sessions/repositories/availability_repository.py
"""
Availability Repository

Data access for mentor schedules and their weekly patterns, exceptions
and rules, plus the booking compare-and-swap on the schedule row.
"""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.availability import (
    AvailabilityException,
    AvailabilityRule,
    AvailabilitySchedule,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilitySchedule]):
    """Repository for availability schedules and their children."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilitySchedule)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(AvailabilitySchedule.weekly_patterns),
            selectinload(AvailabilitySchedule.exceptions),
            selectinload(AvailabilitySchedule.rules),
        )

    def get_by_mentor(
        self, mentor_id: str, load_relationships: bool = True
    ) -> Optional[AvailabilitySchedule]:
        try:
            query = self.db.query(AvailabilitySchedule).filter(
                AvailabilitySchedule.mentor_id == mentor_id
            )
            if load_relationships:
                query = self._apply_eager_loading(query)
            # Refresh identity-map copies so callers always see committed children
            return query.populate_existing().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading schedule for mentor {mentor_id}: {str(e)}")
            raise RepositoryException(f"Failed to load schedule: {str(e)}")

    def get_exception(self, schedule_id: str, exception_id: str) -> Optional[AvailabilityException]:
        return (
            self.db.query(AvailabilityException)
            .filter(
                AvailabilityException.schedule_id == schedule_id,
                AvailabilityException.id == exception_id,
            )
            .first()
        )

    def get_rule(self, schedule_id: str, rule_id: str) -> Optional[AvailabilityRule]:
        return (
            self.db.query(AvailabilityRule)
            .filter(AvailabilityRule.schedule_id == schedule_id, AvailabilityRule.id == rule_id)
            .first()
        )

    def bump_booking_version(self, schedule_id: str, expected_version: int) -> bool:
        """
        Compare-and-swap the schedule's booking version.

        Returns False when another booking for the same mentor committed
        after expected_version was read.
        """
        try:
            result = self.db.execute(
                update(AvailabilitySchedule)
                .where(
                    AvailabilitySchedule.id == schedule_id,
                    AvailabilitySchedule.booking_version == expected_version,
                )
                .values(booking_version=expected_version + 1)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error bumping booking version for {schedule_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking version: {str(e)}")
        return result.rowcount == 1
