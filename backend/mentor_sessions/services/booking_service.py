# backend/mentor_sessions/services/booking_service.py
"""
Booking Service

Turns a resolved slot into a scheduled session. Double booking is
prevented optimistically: occupancy is re-checked against committed
sessions, then the mentor's schedule booking_version is bumped with a
compare-and-swap UPDATE. A lost swap means another booking for the same
mentor committed in between; the attempt is rolled back and retried with
fresh state.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import NotFound, PolicyViolation, SlotTaken, ValidationException
from ..core.timezone_utils import ensure_utc
from ..models.session import MentoringSession, SessionStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.session_repository import SessionRepository
from .availability_service import AvailabilityService
from .base import BaseService, Clock
from .side_effects import SideEffectDispatcher
from .slot_resolver import ResolvedSlot, ScheduleSnapshot, count_occupying, find_slot

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class BookingVersionConflict(Exception):
    """Another booking for the same mentor committed first."""


def charged_rate(base_rate: Decimal, multiplier: Decimal) -> Decimal:
    return (Decimal(str(base_rate)) * Decimal(str(multiplier))).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )


class BookingService(BaseService):
    """Books mentoring sessions into resolved slots."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        side_effects: Optional[SideEffectDispatcher] = None,
        availability_service: Optional[AvailabilityService] = None,
        max_attempts: Optional[int] = None,
    ):
        super().__init__(db, clock)
        self.repo = SessionRepository(db)
        self.availability_repo = AvailabilityRepository(db)
        self.availability = availability_service or AvailabilityService(db, self.clock)
        self.side_effects = side_effects or SideEffectDispatcher()
        self.max_attempts = max_attempts or settings.booking_max_attempts

    @BaseService.measure_operation("book_session")
    def book(
        self,
        mentor_id: str,
        mentee_id: str,
        slot_start: datetime,
        rate: Decimal,
        duration_minutes: Optional[int] = None,
        currency: str = "USD",
        details: Optional[Dict[str, Any]] = None,
    ) -> MentoringSession:
        """
        Book a session starting at slot_start.

        Raises:
            ValidationException: bad participants, duration or rate
            NotFound: mentor has no schedule
            PolicyViolation: outside the booking window or not a slot
            SlotTaken: the slot is at capacity
        """
        if mentor_id == mentee_id:
            raise ValidationException(
                "A mentor cannot book a session with themselves", code="SELF_BOOKING"
            )
        if Decimal(str(rate)) < 0:
            raise ValidationException("Rate must be non-negative", code="INVALID_RATE")
        slot_start = ensure_utc(slot_start)

        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.transaction():
                    session = self._book_once(
                        mentor_id,
                        mentee_id,
                        slot_start,
                        rate,
                        duration_minutes,
                        currency,
                        details or {},
                    )
                break
            except BookingVersionConflict:
                self.logger.info(
                    "Booking version conflict for mentor %s (attempt %d/%d)",
                    mentor_id,
                    attempt,
                    self.max_attempts,
                )
            except SlotTaken:
                prometheus_metrics.inc_booking("slot_taken")
                raise
        else:
            prometheus_metrics.inc_booking("slot_taken")
            raise SlotTaken(
                slot_start, "The slot could not be booked because of concurrent bookings"
            )

        prometheus_metrics.inc_booking("booked")
        self.log_operation(
            "book_session",
            session_id=session.id,
            mentor_id=mentor_id,
            mentee_id=mentee_id,
            scheduled_at=session.scheduled_at.isoformat(),
        )

        self.side_effects.charge(session.id, session.rate, session.currency)
        payload = {
            "session_id": session.id,
            "scheduled_at": session.scheduled_at.isoformat(),
            "requires_confirmation": session.requires_confirmation,
        }
        self.side_effects.notify(mentor_id, "session_booked", payload)
        self.side_effects.notify(mentee_id, "session_booked", payload)
        return session

    def _book_once(
        self,
        mentor_id: str,
        mentee_id: str,
        slot_start: datetime,
        rate: Decimal,
        duration_minutes: Optional[int],
        currency: str,
        details: Dict[str, Any],
    ) -> MentoringSession:
        schedule = self.availability_repo.get_by_mentor(mentor_id)
        if schedule is None:
            raise NotFound("Availability schedule", mentor_id)
        if not schedule.is_active:
            raise PolicyViolation(
                "This mentor is not accepting bookings", details={"mentor_id": mentor_id}
            )
        expected_version = schedule.booking_version

        duration = duration_minutes or schedule.default_session_duration
        if duration <= 0 or duration > schedule.default_session_duration:
            raise ValidationException(
                f"Duration must be between 1 and {schedule.default_session_duration} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration},
            )

        snapshot = AvailabilityService.build_snapshot(schedule)
        slot = self.validate_slot(snapshot, slot_start, self.now())

        busy = self.availability.busy_around(mentor_id, slot_start)
        booked = count_occupying(busy, slot_start, duration, snapshot.buffer_minutes)
        if booked >= slot.capacity:
            raise SlotTaken(slot_start)

        if not self.availability_repo.bump_booking_version(schedule.id, expected_version):
            raise BookingVersionConflict()

        return self.repo.create(
            mentor_id=mentor_id,
            mentee_id=mentee_id,
            scheduled_at=slot_start,
            duration_minutes=duration,
            status=SessionStatus.SCHEDULED.value,
            rate=charged_rate(rate, slot.price_multiplier),
            currency=currency,
            requires_confirmation=slot.requires_confirmation,
            created_at=self.now(),
            **details,
        )

    @staticmethod
    def validate_slot(
        snapshot: ScheduleSnapshot, instant: datetime, now: datetime
    ) -> ResolvedSlot:
        """
        The slot starting at instant, ignoring bookings.

        Raises PolicyViolation when the instant is outside the advance-booking
        window or is not a slot of the mentor's availability.
        """
        if find_slot(snapshot, [], instant, now, apply_window=False) is None:
            raise PolicyViolation(
                "The requested time is not an available slot",
                details={"slot_start": instant.isoformat()},
            )
        slot = find_slot(snapshot, [], instant, now, apply_window=True)
        if slot is None:
            hours_ahead = (instant - now).total_seconds() / 3600
            raise PolicyViolation(
                f"Sessions must be booked between {snapshot.min_advance_hours} hours "
                f"and {snapshot.max_advance_days} days in advance",
                cutoff_hours=snapshot.min_advance_hours,
                hours_until=hours_ahead,
                details={"slot_start": instant.isoformat()},
            )
        return slot
