"""BookingService: slot validation, capacity, optimistic retries and side effects."""

from datetime import timedelta
from decimal import Decimal

import pytest

from mentor_sessions.core.exceptions import (
    NotFound,
    PolicyViolation,
    SlotTaken,
    ValidationException,
)
from mentor_sessions.models.session import MentoringSession, SessionStatus
from mentor_sessions.schemas.availability import (
    RuleActions,
    RuleConditions,
    RuleCreate,
    TimeRange,
)
from mentor_sessions.services.booking_service import charged_rate

from ..helpers import BASE_NOW, MONDAY, TUESDAY, at, events_for, weekday_schedule


def test_charged_rate_rounds_half_up():
    assert charged_rate(Decimal("99.99"), Decimal("1.5")) == Decimal("149.99")
    assert charged_rate(Decimal("10.00"), Decimal("1.125")) == Decimal("11.25")


class TestBook:
    def test_books_a_slot(self, book, mentor_id, mentee_id):
        session = book(at(TUESDAY, 10, 15))

        assert session.status == SessionStatus.SCHEDULED
        assert session.mentor_id == mentor_id
        assert session.mentee_id == mentee_id
        assert session.scheduled_at == at(TUESDAY, 10, 15)
        assert session.duration_minutes == 60
        assert session.rate == Decimal("100.00")
        assert session.mentee_reschedule_count == 0
        assert session.mentor_reschedule_count == 0

    def test_charges_and_notifies_after_commit(
        self, book, payments, notifications, mentor_id, mentee_id
    ):
        session = book(at(TUESDAY, 9))

        assert [charge["session_id"] for charge in payments.charges] == [session.id]
        assert payments.charges[0]["amount"] == "100.00"
        assert events_for(notifications, mentor_id) == ["session_booked"]
        assert events_for(notifications, mentee_id) == ["session_booked"]

    def test_second_booking_of_the_same_slot_is_rejected(self, book, outsider_id, db):
        book(at(TUESDAY, 10, 15))

        with pytest.raises(SlotTaken) as exc_info:
            book(at(TUESDAY, 10, 15), mentee=outsider_id)

        assert exc_info.value.code == "SLOT_TAKEN"
        assert db.query(MentoringSession).count() == 1

    def test_slot_removed_from_listing_once_booked(
        self, book, availability_service, mentor_id
    ):
        book(at(TUESDAY, 10, 15))

        slots = availability_service.list_slots(mentor_id, TUESDAY, TUESDAY)

        assert at(TUESDAY, 10, 15) not in [slot.start for slot in slots]
        assert len(slots) == 5

    def test_off_grid_instant_is_not_a_slot(self, book):
        with pytest.raises(PolicyViolation) as exc_info:
            book(at(TUESDAY, 9, 30))
        assert "not an available slot" in exc_info.value.message

    def test_inside_min_advance_window(self, book):
        with pytest.raises(PolicyViolation) as exc_info:
            book(at(MONDAY, 14))
        assert exc_info.value.cutoff_hours == 24

    def test_unknown_mentor(self, booking_service, mentee_id):
        with pytest.raises(NotFound):
            booking_service.book("01J00000000000000000000000", mentee_id, at(TUESDAY, 9), Decimal("1"))

    def test_self_booking(self, booking_service, schedule, mentor_id):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.book(mentor_id, mentor_id, at(TUESDAY, 9), Decimal("1"))
        assert exc_info.value.code == "SELF_BOOKING"

    def test_negative_rate(self, booking_service, schedule, mentor_id, mentee_id):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.book(mentor_id, mentee_id, at(TUESDAY, 9), Decimal("-5"))
        assert exc_info.value.code == "INVALID_RATE"

    def test_duration_cannot_exceed_slot(self, booking_service, schedule, mentor_id, mentee_id):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.book(
                mentor_id, mentee_id, at(TUESDAY, 9), Decimal("1"), duration_minutes=90
            )
        assert exc_info.value.code == "INVALID_DURATION"

    def test_inactive_schedule(
        self, availability_service, booking_service, mentor_id, mentee_id
    ):
        availability_service.upsert_schedule(mentor_id, weekday_schedule(is_active=False))

        with pytest.raises(PolicyViolation):
            booking_service.book(mentor_id, mentee_id, at(TUESDAY, 9), Decimal("1"))

    def test_rule_multiplier_and_confirmation(
        self, availability_service, schedule, book, mentor_id
    ):
        availability_service.add_rule(
            mentor_id,
            RuleCreate(
                name="Morning premium",
                conditions=RuleConditions(time_range=TimeRange(start="09:00", end="12:00")),
                actions=RuleActions(price_multiplier=Decimal("1.5"), requires_confirmation=True),
            ),
        )

        morning = book(at(TUESDAY, 9), rate="80.00")
        afternoon = book(at(TUESDAY, 14), rate="80.00")

        assert morning.rate == Decimal("120.00")
        assert morning.requires_confirmation is True
        assert afternoon.rate == Decimal("80.00")
        assert afternoon.requires_confirmation is False


class TestOptimisticRetries:
    def test_lost_version_swap_is_retried(self, booking_service, book, monkeypatch):
        repo = booking_service.availability_repo
        real_bump = repo.bump_booking_version
        calls = []

        def flaky_bump(schedule_id, expected_version):
            calls.append(expected_version)
            if len(calls) == 1:
                return False
            return real_bump(schedule_id, expected_version)

        monkeypatch.setattr(repo, "bump_booking_version", flaky_bump)

        session = book(at(TUESDAY, 9))

        assert session.id
        assert len(calls) == 2

    def test_exhausted_retries_raise_slot_taken(self, booking_service, book, monkeypatch, db):
        monkeypatch.setattr(
            booking_service.availability_repo,
            "bump_booking_version",
            lambda schedule_id, expected_version: False,
        )

        with pytest.raises(SlotTaken):
            book(at(TUESDAY, 9))

        assert db.query(MentoringSession).count() == 0

    def test_version_advances_with_each_booking(self, book, availability_service, mentor_id):
        before = availability_service.get_schedule(mentor_id).booking_version

        book(at(TUESDAY, 9))
        book(at(TUESDAY, 14))

        assert availability_service.get_schedule(mentor_id).booking_version == before + 2


def test_capacity_two_allows_two_mentees(
    availability_service, booking_service, mentor_id, mentee_id, outsider_id
):
    availability_service.upsert_schedule(mentor_id, weekday_schedule())
    availability_service.add_rule(
        mentor_id, RuleCreate(name="Group", actions=RuleActions(max_bookings=2))
    )

    booking_service.book(mentor_id, mentee_id, at(TUESDAY, 9), Decimal("10"))
    booking_service.book(mentor_id, outsider_id, at(TUESDAY, 9), Decimal("10"))

    with pytest.raises(SlotTaken):
        booking_service.book(mentor_id, "01J00000000000000000000000", at(TUESDAY, 9), Decimal("10"))


def test_clock_drives_the_booking_window(book, clock):
    clock.set(BASE_NOW + timedelta(hours=2))  # Monday 10:00

    with pytest.raises(PolicyViolation):
        book(at(TUESDAY, 9))
    assert book(at(TUESDAY, 10, 15)).scheduled_at == at(TUESDAY, 10, 15)
