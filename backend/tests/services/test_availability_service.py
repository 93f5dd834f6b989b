"""AvailabilityService: schedule writes and slot listing through the database."""

from datetime import date, timedelta

import pytest

from mentor_sessions.core.exceptions import (
    AvailabilityOverlapException,
    NotFound,
    ValidationException,
)
from mentor_sessions.schemas.availability import (
    ExceptionCreate,
    RuleActions,
    RuleConditions,
    RuleCreate,
    RuleUpdate,
    TimeBlockSchema,
    WeeklyPatternIn,
    WeeklyPatternUpdate,
)

from ..helpers import SATURDAY, TUESDAY, WEDNESDAY, at, weekday_schedule


def block(start: str, end: str, **kwargs) -> TimeBlockSchema:
    return TimeBlockSchema(start=start, end=end, **kwargs)


class TestScheduleWrites:
    def test_upsert_creates_schedule_and_week(self, schedule, mentor_id):
        assert schedule.mentor_id == mentor_id
        assert schedule.buffer_minutes == 15
        assert schedule.booking_version == 0
        assert [p.day_of_week for p in schedule.weekly_patterns] == [1, 2, 3, 4, 5]
        assert schedule.weekly_patterns[0].time_blocks == [
            {"start": "09:00", "end": "17:00", "kind": "AVAILABLE", "max_concurrent_bookings": 1}
        ]

    def test_upsert_without_week_keeps_patterns(self, availability_service, schedule, mentor_id):
        updated = availability_service.upsert_schedule(
            mentor_id, weekday_schedule(weekly_patterns=None, buffer_minutes=30)
        )

        assert updated.id == schedule.id
        assert updated.buffer_minutes == 30
        assert len(updated.weekly_patterns) == 5

    def test_upsert_with_week_replaces_patterns(self, availability_service, schedule, mentor_id):
        updated = availability_service.upsert_schedule(
            mentor_id,
            weekday_schedule(
                weekly_patterns=[
                    WeeklyPatternIn(day_of_week=3, time_blocks=[block("10:00", "12:00")])
                ]
            ),
        )

        assert [p.day_of_week for p in updated.weekly_patterns] == [3]

    def test_overlapping_blocks_are_rejected(self, availability_service, mentor_id):
        data = weekday_schedule(
            weekly_patterns=[
                WeeklyPatternIn(
                    day_of_week=1, time_blocks=[block("09:00", "12:00"), block("11:00", "13:00")]
                )
            ]
        )

        with pytest.raises(AvailabilityOverlapException) as exc_info:
            availability_service.upsert_schedule(mentor_id, data)

        assert exc_info.value.details["day"] == "Monday"
        with pytest.raises(NotFound):
            availability_service.get_schedule(mentor_id)

    def test_touching_blocks_are_sorted(self, availability_service, schedule, mentor_id):
        pattern = availability_service.set_weekly_pattern(
            mentor_id,
            6,
            WeeklyPatternUpdate(time_blocks=[block("13:00", "15:00"), block("10:00", "13:00")]),
        )

        assert [b["start"] for b in pattern.time_blocks] == ["10:00", "13:00"]
        slots = availability_service.list_slots(mentor_id, SATURDAY, SATURDAY)
        assert [s.start.strftime("%H:%M") for s in slots] == ["10:00", "11:15", "13:00"]

    def test_disabling_a_day_removes_its_slots(self, availability_service, schedule, mentor_id):
        availability_service.set_weekly_pattern(
            mentor_id, 2, WeeklyPatternUpdate(is_enabled=False, time_blocks=[block("09:00", "17:00")])
        )

        assert availability_service.list_slots(mentor_id, TUESDAY, TUESDAY) == []

    def test_unknown_mentor(self, availability_service):
        with pytest.raises(NotFound):
            availability_service.get_schedule("01J00000000000000000000000")


class TestExceptions:
    def test_full_day_exception_and_removal(self, availability_service, schedule, mentor_id):
        exception = availability_service.add_exception(
            mentor_id, ExceptionCreate(start_date=TUESDAY, end_date=WEDNESDAY, reason="Conference")
        )
        assert availability_service.list_slots(mentor_id, TUESDAY, WEDNESDAY) == []

        availability_service.remove_exception(mentor_id, exception.id)
        assert len(availability_service.list_slots(mentor_id, TUESDAY, WEDNESDAY)) == 12

    def test_partial_exception(self, availability_service, schedule, mentor_id):
        availability_service.add_exception(
            mentor_id,
            ExceptionCreate(
                start_date=TUESDAY,
                end_date=TUESDAY,
                kind="modified_hours",
                is_full_day=False,
                time_blocks=[block("14:00", "16:30")],
            ),
        )

        slots = availability_service.list_slots(mentor_id, TUESDAY, TUESDAY)
        assert [s.start for s in slots] == [at(TUESDAY, 14), at(TUESDAY, 15, 15)]

    def test_remove_unknown_exception(self, availability_service, schedule, mentor_id):
        with pytest.raises(NotFound):
            availability_service.remove_exception(mentor_id, "01J00000000000000000000000")


class TestRules:
    def test_default_priorities(self, availability_service, schedule, mentor_id):
        scoped = availability_service.add_rule(
            mentor_id, RuleCreate(name="Tuesdays", conditions=RuleConditions(days_of_week=[2]))
        )
        global_rule = availability_service.add_rule(mentor_id, RuleCreate(name="Everywhere"))

        assert scoped.priority == 0
        assert global_rule.priority == -1
        assert scoped.conditions == {"days_of_week": [2]}

    def test_update_and_remove(self, availability_service, schedule, mentor_id):
        rule = availability_service.add_rule(
            mentor_id,
            RuleCreate(
                name="Tuesday premium",
                conditions=RuleConditions(days_of_week=[2]),
                actions=RuleActions(price_multiplier="2"),
            ),
        )
        slots = availability_service.list_slots(mentor_id, TUESDAY, WEDNESDAY)
        assert {str(s.price_multiplier) for s in slots if s.start.date() == TUESDAY} == {"2"}

        availability_service.update_rule(mentor_id, rule.id, RuleUpdate(is_active=False))
        slots = availability_service.list_slots(mentor_id, TUESDAY, TUESDAY)
        assert all(s.price_multiplier == 1 for s in slots)

        availability_service.remove_rule(mentor_id, rule.id)
        with pytest.raises(NotFound):
            availability_service.update_rule(mentor_id, rule.id, RuleUpdate(priority=3))


class TestListSlots:
    def test_range_limit(self, availability_service, schedule, mentor_id):
        start = date(2025, 6, 3)
        with pytest.raises(ValidationException) as exc_info:
            availability_service.list_slots(mentor_id, start, start + timedelta(days=120))
        assert exc_info.value.code == "DATE_RANGE_TOO_LARGE"

    def test_viewer_timezone(self, availability_service, schedule, mentor_id):
        slots = availability_service.list_slots(mentor_id, TUESDAY, TUESDAY, "Asia/Kolkata")

        assert slots[0].start == at(TUESDAY, 9)
        assert slots[0].display_start.strftime("%H:%M") == "14:30"
