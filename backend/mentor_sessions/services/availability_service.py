# backend/mentor_sessions/services/availability_service.py
"""
Availability Service

Owns a mentor's schedule: settings, the weekly pattern, dated exceptions
and rules. Also the read side used by every flow that needs slots: it
snapshots the stored schedule, loads the mentor's occupying sessions and
hands both to the pure slot resolver.
"""

from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..constants.policy_defaults import GLOBAL_RULE_DEFAULT_PRIORITY, RULE_DEFAULT_PRIORITY
from ..core.config import settings
from ..core.enums import BookingMode
from ..core.exceptions import AvailabilityOverlapException, NotFound
from ..models.availability import (
    AvailabilityException,
    AvailabilityRule,
    AvailabilitySchedule,
    WeeklyPattern,
)
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.session_repository import SessionRepository
from ..schemas.availability import (
    ExceptionCreate,
    RuleCreate,
    RuleUpdate,
    ScheduleUpsert,
    TimeBlockSchema,
    WeeklyPatternUpdate,
)
from .base import BaseService, Clock
from .slot_resolver import (
    BusyInterval,
    ExceptionWindow,
    ResolvedSlot,
    RuleWindow,
    ScheduleSnapshot,
    TimeBlock,
    resolve_slots,
)

logger = logging.getLogger(__name__)

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

SCHEDULE_FIELDS = (
    "timezone",
    "default_session_duration",
    "buffer_minutes",
    "min_advance_booking_hours",
    "max_advance_booking_days",
    "is_active",
)


def normalize_blocks(blocks: Sequence[TimeBlockSchema], label: str) -> List[Dict[str, object]]:
    """Sort blocks by start and reject overlaps (touching blocks are fine)."""
    ordered = sorted(blocks, key=lambda block: block.start)
    for previous, current in zip(ordered, ordered[1:]):
        if previous.end > current.start:
            raise AvailabilityOverlapException(
                label,
                f"{current.start}-{current.end}",
                f"{previous.start}-{previous.end}",
            )
    return [block.model_dump(mode="json") for block in ordered]


class AvailabilityService(BaseService):
    """Availability store operations and slot listing."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.repo = AvailabilityRepository(db)
        self.session_repo = SessionRepository(db)

    # Reads

    def get_schedule(self, mentor_id: str) -> AvailabilitySchedule:
        schedule = self.repo.get_by_mentor(mentor_id)
        if schedule is None:
            raise NotFound("Availability schedule", mentor_id)
        return schedule

    @staticmethod
    def build_snapshot(schedule: AvailabilitySchedule) -> ScheduleSnapshot:
        """Immutable view of a stored schedule for the slot resolver."""
        weekly = {
            pattern.day_of_week: tuple(TimeBlock.from_dict(b) for b in pattern.time_blocks or [])
            for pattern in schedule.weekly_patterns
            if pattern.is_enabled
        }
        exceptions = tuple(
            ExceptionWindow(
                id=exc.id,
                start_date=exc.start_date,
                end_date=exc.end_date,
                is_full_day=exc.is_full_day,
                created_at=exc.created_at,
                time_blocks=tuple(TimeBlock.from_dict(b) for b in exc.time_blocks or []),
            )
            for exc in schedule.exceptions
        )
        rules = tuple(
            RuleWindow.from_documents(
                rule.id, rule.priority, rule.created_at, rule.conditions, rule.actions
            )
            for rule in schedule.rules
            if rule.is_active
        )
        return ScheduleSnapshot(
            timezone=schedule.timezone,
            session_duration=schedule.default_session_duration,
            buffer_minutes=schedule.buffer_minutes,
            min_advance_hours=schedule.min_advance_booking_hours,
            max_advance_days=schedule.max_advance_booking_days,
            requires_confirmation=schedule.booking_mode == BookingMode.REQUIRES_CONFIRMATION,
            is_active=schedule.is_active,
            weekly=weekly,
            exceptions=exceptions,
            rules=rules,
        )

    def busy_intervals(
        self,
        mentor_id: str,
        window_start: datetime,
        window_end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[BusyInterval]:
        sessions = self.session_repo.get_occupying(
            mentor_id, window_start, window_end, exclude_session_id=exclude_session_id
        )
        return [BusyInterval(start=s.scheduled_at, end=s.ends_at) for s in sessions]

    def busy_around(
        self, mentor_id: str, instant: datetime, exclude_session_id: Optional[str] = None
    ) -> List[BusyInterval]:
        """Occupying sessions within a day either side of an instant."""
        return self.busy_intervals(
            mentor_id,
            instant - timedelta(days=1),
            instant + timedelta(days=1),
            exclude_session_id=exclude_session_id,
        )

    @BaseService.measure_operation("list_slots")
    def list_slots(
        self,
        mentor_id: str,
        start_date: date,
        end_date: date,
        viewer_timezone: Optional[str] = None,
    ) -> List[ResolvedSlot]:
        schedule = self.get_schedule(mentor_id)
        snapshot = self.build_snapshot(schedule)

        # One day of margin either side covers every UTC offset
        window_start = datetime.combine(
            start_date - timedelta(days=1), time.min, tzinfo=timezone.utc
        )
        window_end = datetime.combine(end_date + timedelta(days=2), time.min, tzinfo=timezone.utc)
        busy = self.busy_intervals(mentor_id, window_start, window_end)

        slots = resolve_slots(
            snapshot,
            busy,
            start_date,
            end_date,
            viewer_timezone or schedule.timezone,
            self.now(),
            max_range_days=settings.slot_range_max_days,
        )
        self.logger.debug(
            "Resolved %d slots for mentor %s (%s..%s)", len(slots), mentor_id, start_date, end_date
        )
        return slots

    # Writes

    @BaseService.measure_operation("upsert_schedule")
    def upsert_schedule(self, mentor_id: str, data: ScheduleUpsert) -> AvailabilitySchedule:
        with self.transaction():
            schedule = self.repo.get_by_mentor(mentor_id)
            if schedule is None:
                schedule = AvailabilitySchedule(mentor_id=mentor_id)
                self.db.add(schedule)

            for field in SCHEDULE_FIELDS:
                setattr(schedule, field, getattr(data, field))
            schedule.booking_mode = data.booking_mode.value
            self.db.flush()

            if data.weekly_patterns is not None:
                wanted = {pattern.day_of_week: pattern for pattern in data.weekly_patterns}
                for existing in list(schedule.weekly_patterns):
                    if existing.day_of_week not in wanted:
                        schedule.weekly_patterns.remove(existing)
                for day, pattern in wanted.items():
                    self._apply_pattern(schedule, day, pattern)

        self.log_operation("upsert_schedule", mentor_id=mentor_id)
        self.db.refresh(schedule)
        return schedule

    @BaseService.measure_operation("set_weekly_pattern")
    def set_weekly_pattern(
        self, mentor_id: str, day_of_week: int, data: WeeklyPatternUpdate
    ) -> WeeklyPattern:
        with self.transaction():
            schedule = self.get_schedule(mentor_id)
            pattern = self._apply_pattern(schedule, day_of_week, data)

        self.log_operation("set_weekly_pattern", mentor_id=mentor_id, day_of_week=day_of_week)
        return pattern

    def _apply_pattern(
        self, schedule: AvailabilitySchedule, day_of_week: int, data: WeeklyPatternUpdate
    ) -> WeeklyPattern:
        blocks = normalize_blocks(data.time_blocks, DAY_NAMES[day_of_week])
        pattern = schedule.pattern_for_day(day_of_week)
        if pattern is None:
            pattern = WeeklyPattern(
                schedule_id=schedule.id,
                day_of_week=day_of_week,
                is_enabled=data.is_enabled,
                time_blocks=blocks,
            )
            schedule.weekly_patterns.append(pattern)
        else:
            pattern.is_enabled = data.is_enabled
            pattern.time_blocks = blocks
        self.db.flush()
        return pattern

    @BaseService.measure_operation("add_exception")
    def add_exception(self, mentor_id: str, data: ExceptionCreate) -> AvailabilityException:
        blocks = None
        if not data.is_full_day:
            blocks = normalize_blocks(data.time_blocks or [], data.start_date.isoformat())

        with self.transaction():
            schedule = self.get_schedule(mentor_id)
            exception = AvailabilityException(
                schedule_id=schedule.id,
                start_date=data.start_date,
                end_date=data.end_date,
                kind=data.kind.value,
                is_full_day=data.is_full_day,
                time_blocks=blocks,
                reason=data.reason,
                created_at=self.now(),
            )
            schedule.exceptions.append(exception)
            self.db.flush()

        self.log_operation(
            "add_exception",
            mentor_id=mentor_id,
            start_date=data.start_date.isoformat(),
            end_date=data.end_date.isoformat(),
        )
        return exception

    def remove_exception(self, mentor_id: str, exception_id: str) -> None:
        with self.transaction():
            schedule = self.get_schedule(mentor_id)
            exception = self.repo.get_exception(schedule.id, exception_id)
            if exception is None:
                raise NotFound("Availability exception", exception_id)
            schedule.exceptions.remove(exception)
            self.db.flush()
        self.log_operation("remove_exception", mentor_id=mentor_id, exception_id=exception_id)

    @BaseService.measure_operation("add_rule")
    def add_rule(self, mentor_id: str, data: RuleCreate) -> AvailabilityRule:
        priority = data.priority
        if priority is None:
            priority = (
                GLOBAL_RULE_DEFAULT_PRIORITY if data.conditions.is_empty else RULE_DEFAULT_PRIORITY
            )

        with self.transaction():
            schedule = self.get_schedule(mentor_id)
            rule = AvailabilityRule(
                schedule_id=schedule.id,
                name=data.name,
                description=data.description,
                conditions=data.conditions.model_dump(mode="json", exclude_none=True),
                actions=data.actions.model_dump(mode="json", exclude_none=True),
                priority=priority,
                is_active=data.is_active,
                created_at=self.now(),
            )
            schedule.rules.append(rule)
            self.db.flush()

        self.log_operation("add_rule", mentor_id=mentor_id, rule=data.name, priority=priority)
        return rule

    def update_rule(self, mentor_id: str, rule_id: str, data: RuleUpdate) -> AvailabilityRule:
        with self.transaction():
            schedule = self.get_schedule(mentor_id)
            rule = self.repo.get_rule(schedule.id, rule_id)
            if rule is None:
                raise NotFound("Availability rule", rule_id)

            changes = data.model_dump(exclude_unset=True)
            for field in ("name", "description", "priority", "is_active"):
                if field in changes and changes[field] is not None:
                    setattr(rule, field, changes[field])
            if data.conditions is not None:
                rule.conditions = data.conditions.model_dump(mode="json", exclude_none=True)
            if data.actions is not None:
                rule.actions = data.actions.model_dump(mode="json", exclude_none=True)
            self.db.flush()

        self.log_operation("update_rule", mentor_id=mentor_id, rule_id=rule_id)
        return rule

    def remove_rule(self, mentor_id: str, rule_id: str) -> None:
        with self.transaction():
            schedule = self.get_schedule(mentor_id)
            rule = self.repo.get_rule(schedule.id, rule_id)
            if rule is None:
                raise NotFound("Availability rule", rule_id)
            schedule.rules.remove(rule)
            self.db.flush()
        self.log_operation("remove_rule", mentor_id=mentor_id, rule_id=rule_id)
