# backend/mentor_sessions/services/slot_resolver.py
"""
Pure slot resolution.

Turns a mentor's weekly pattern, dated exceptions and rules into concrete
bookable slots for a date range. Nothing in this module touches the
database or the clock; callers pass a ScheduleSnapshot, the mentor's
occupying sessions and "now".

Resolution per local date (schedule timezone):
    1. Pick the day's time blocks: the latest-created covering exception
       wins over the weekly pattern; a full-day exception yields nothing.
    2. Walk every AVAILABLE block in steps of duration + buffer. A slot fits
       while its end plus the buffer stays inside the block.
    3. Apply the highest-priority matching rule to each slot.
    4. Drop slots outside the advance-booking window.
    5. Drop slots whose occupancy already reached capacity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.enums import TimeBlockKind
from ..core.exceptions import ValidationException
from ..core.timezone_utils import (
    day_of_week,
    ensure_utc,
    get_timezone,
    local_to_utc,
    utc_to_local,
)

logger = logging.getLogger(__name__)

ONE = Decimal("1")


def parse_hhmm(value: Any) -> time:
    """Parse "HH:MM" (or pass through a time)."""
    if isinstance(value, time):
        return value
    try:
        hours, minutes = str(value).split(":")[:2]
        return time(int(hours), int(minutes))
    except (TypeError, ValueError):
        raise ValidationException(
            f"Invalid time of day: {value!r}", code="INVALID_TIME", details={"value": value}
        )


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class TimeBlock:
    start: time
    end: time
    kind: TimeBlockKind = TimeBlockKind.AVAILABLE
    max_concurrent_bookings: int = 1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimeBlock":
        return cls(
            start=parse_hhmm(data["start"]),
            end=parse_hhmm(data["end"]),
            kind=TimeBlockKind(data.get("kind", TimeBlockKind.AVAILABLE.value)),
            max_concurrent_bookings=int(data.get("max_concurrent_bookings") or 1),
        )

    @property
    def is_available(self) -> bool:
        return self.kind == TimeBlockKind.AVAILABLE


@dataclass(frozen=True)
class ExceptionWindow:
    id: str
    start_date: date
    end_date: date
    is_full_day: bool
    created_at: datetime
    time_blocks: Tuple[TimeBlock, ...] = ()

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class RuleWindow:
    """An active rule flattened into matchable conditions and overrides."""

    id: str
    priority: int
    created_at: datetime
    days_of_week: Optional[frozenset] = None
    time_start: Optional[time] = None
    time_end: Optional[time] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    max_bookings: Optional[int] = None
    requires_confirmation: Optional[bool] = None
    price_multiplier: Optional[Decimal] = None

    @classmethod
    def from_documents(
        cls,
        rule_id: str,
        priority: int,
        created_at: datetime,
        conditions: Optional[Mapping[str, Any]],
        actions: Optional[Mapping[str, Any]],
    ) -> "RuleWindow":
        conditions = conditions or {}
        actions = actions or {}
        days = conditions.get("days_of_week")
        time_range = conditions.get("time_range") or {}
        date_range = conditions.get("date_range") or {}
        multiplier = actions.get("price_multiplier")
        return cls(
            id=rule_id,
            priority=priority,
            created_at=created_at,
            days_of_week=frozenset(int(d) for d in days) if days else None,
            time_start=parse_hhmm(time_range["start"]) if time_range.get("start") else None,
            time_end=parse_hhmm(time_range["end"]) if time_range.get("end") else None,
            date_start=_as_date(date_range.get("start")),
            date_end=_as_date(date_range.get("end")),
            max_bookings=actions.get("max_bookings"),
            requires_confirmation=actions.get("requires_confirmation"),
            price_multiplier=Decimal(str(multiplier)) if multiplier is not None else None,
        )

    def matches(self, local_date: date, local_time: time) -> bool:
        if self.days_of_week is not None and day_of_week(local_date) not in self.days_of_week:
            return False
        if self.time_start is not None and local_time < self.time_start:
            return False
        if self.time_end is not None and local_time >= self.time_end:
            return False
        if self.date_start is not None and local_date < self.date_start:
            return False
        if self.date_end is not None and local_date > self.date_end:
            return False
        return True


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationException(
            f"Invalid date: {value!r}", code="INVALID_DATE", details={"value": value}
        )


@dataclass(frozen=True)
class ScheduleSnapshot:
    timezone: str
    session_duration: int
    buffer_minutes: int
    min_advance_hours: int
    max_advance_days: int
    requires_confirmation: bool = False
    is_active: bool = True
    # Enabled days only, keyed by day of week (0 = Sunday)
    weekly: Mapping[int, Tuple[TimeBlock, ...]] = field(default_factory=dict)
    exceptions: Tuple[ExceptionWindow, ...] = ()
    rules: Tuple[RuleWindow, ...] = ()


@dataclass(frozen=True)
class BusyInterval:
    """An occupying session: [start, end) without the trailing buffer."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class ResolvedSlot:
    start: datetime
    end: datetime
    display_start: datetime
    display_end: datetime
    capacity: int
    booked: int
    requires_confirmation: bool
    price_multiplier: Decimal = ONE

    @property
    def remaining(self) -> int:
        return self.capacity - self.booked


def blocks_for_date(snapshot: ScheduleSnapshot, local_date: date) -> Tuple[TimeBlock, ...]:
    """Time blocks in force on a local date."""
    covering = [exc for exc in snapshot.exceptions if exc.covers(local_date)]
    if covering:
        winner = max(covering, key=lambda exc: (exc.created_at, exc.id))
        if winner.is_full_day:
            return ()
        return winner.time_blocks
    return snapshot.weekly.get(day_of_week(local_date), ())


def select_rule(
    rules: Iterable[RuleWindow], local_date: date, local_time: time
) -> Optional[RuleWindow]:
    """Highest priority matching rule; ties go to the most recently created."""
    matching = [rule for rule in rules if rule.matches(local_date, local_time)]
    if not matching:
        return None
    return max(matching, key=lambda rule: (rule.priority, rule.created_at, rule.id))


def count_occupying(
    busy: Iterable[BusyInterval], start: datetime, duration_minutes: int, buffer_minutes: int
) -> int:
    """Sessions whose [start, end + buffer) overlaps [start, start + duration)."""
    end = start + timedelta(minutes=duration_minutes)
    buffer = timedelta(minutes=buffer_minutes)
    return sum(1 for interval in busy if interval.start < end and start < interval.end + buffer)


def _candidate_starts(block: TimeBlock, duration: int, buffer: int) -> List[time]:
    starts: List[time] = []
    cursor = _minutes(block.start)
    block_end = _minutes(block.end)
    while cursor + duration + buffer <= block_end:
        starts.append(time(cursor // 60, cursor % 60))
        cursor += duration + buffer
    return starts


def _validate_range(range_start: date, range_end: date, max_range_days: int) -> None:
    if range_end < range_start:
        raise ValidationException(
            "End date must be on or after start date",
            code="INVALID_DATE_RANGE",
            details={"start_date": range_start.isoformat(), "end_date": range_end.isoformat()},
        )
    span = (range_end - range_start).days + 1
    if span > max_range_days:
        raise ValidationException(
            f"Date range cannot exceed {max_range_days} days",
            code="DATE_RANGE_TOO_LARGE",
            details={"days": span, "max_days": max_range_days},
        )


def resolve_slots(
    snapshot: ScheduleSnapshot,
    busy: Sequence[BusyInterval],
    range_start: date,
    range_end: date,
    viewer_timezone: str,
    now: datetime,
    *,
    max_range_days: int = 90,
    apply_window: bool = True,
) -> List[ResolvedSlot]:
    """
    Resolve bookable slots for [range_start, range_end] in the schedule timezone.

    Deterministic for identical inputs. Output is strictly ascending by start.
    """
    _validate_range(range_start, range_end, max_range_days)
    get_timezone(snapshot.timezone)
    get_timezone(viewer_timezone)
    now = ensure_utc(now)

    if not snapshot.is_active:
        return []

    duration = snapshot.session_duration
    buffer = snapshot.buffer_minutes
    earliest = now + timedelta(hours=snapshot.min_advance_hours)
    latest = now + timedelta(days=snapshot.max_advance_days)

    slots: Dict[datetime, ResolvedSlot] = {}
    current = range_start
    while current <= range_end:
        for block in blocks_for_date(snapshot, current):
            if not block.is_available:
                continue
            for local_start in _candidate_starts(block, duration, buffer):
                start = local_to_utc(current, local_start, snapshot.timezone)
                if start is None:
                    continue
                if apply_window and (start < earliest or start > latest):
                    continue

                capacity = block.max_concurrent_bookings
                requires_confirmation = snapshot.requires_confirmation
                multiplier = ONE
                rule = select_rule(snapshot.rules, current, local_start)
                if rule is not None:
                    if rule.max_bookings is not None:
                        capacity = int(rule.max_bookings)
                    if rule.requires_confirmation is not None:
                        requires_confirmation = bool(rule.requires_confirmation)
                    if rule.price_multiplier is not None:
                        multiplier = rule.price_multiplier

                booked = count_occupying(busy, start, duration, buffer)
                if booked >= capacity:
                    continue

                end = start + timedelta(minutes=duration)
                slots[start] = ResolvedSlot(
                    start=start,
                    end=end,
                    display_start=utc_to_local(start, viewer_timezone),
                    display_end=utc_to_local(end, viewer_timezone),
                    capacity=capacity,
                    booked=booked,
                    requires_confirmation=requires_confirmation,
                    price_multiplier=multiplier,
                )
        current += timedelta(days=1)

    return [slots[key] for key in sorted(slots)]


def find_slot(
    snapshot: ScheduleSnapshot,
    busy: Sequence[BusyInterval],
    instant: datetime,
    now: datetime,
    *,
    apply_window: bool = True,
) -> Optional[ResolvedSlot]:
    """Return the resolved slot starting exactly at instant, if any."""
    instant = ensure_utc(instant)
    local_date = utc_to_local(instant, snapshot.timezone).date()
    for slot in resolve_slots(
        snapshot,
        busy,
        local_date,
        local_date,
        snapshot.timezone,
        now,
        apply_window=apply_window,
    ):
        if slot.start == instant:
            return slot
    return None
