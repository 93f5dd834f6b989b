"""
Interleaved writers on a file-backed database.

Each service runs on its own SQLAlchemy session; a monkeypatched read hook
lets the competing writer commit in the middle of the other's transaction.
"""

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from mentor_sessions.core.enums import RescheduleAction
from mentor_sessions.core.exceptions import RequestAlreadyActive, SlotTaken
from mentor_sessions.core.ulid_helper import generate_ulid
from mentor_sessions.database import build_engine, init_db
from mentor_sessions.models.reschedule_request import (
    ACTIVE_RESCHEDULE_STATUSES,
    RescheduleRequest,
    RescheduleStatus,
)
from mentor_sessions.models.session import MentoringSession
from mentor_sessions.services.availability_service import AvailabilityService
from mentor_sessions.services.booking_service import BookingService
from mentor_sessions.services.reschedule_service import RescheduleService

from ..helpers import TUESDAY, WEDNESDAY, at, weekday_schedule

SLOT = at(TUESDAY, 10, 15)
TARGET = at(WEDNESDAY, 9)


@pytest.fixture
def file_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sessions.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def open_session(file_engine):
    """Factory for independent sessions on the shared database file."""
    factory = sessionmaker(
        autocommit=False, autoflush=False, bind=file_engine, expire_on_commit=False
    )
    opened = []

    def _open():
        db = factory()
        opened.append(db)
        return db

    yield _open

    for db in opened:
        db.rollback()
        db.close()


@pytest.fixture
def booked(open_session, clock, side_effects, mentor_id, mentee_id):
    """A Tuesday session committed through its own session."""
    db = open_session()
    AvailabilityService(db, clock).upsert_schedule(mentor_id, weekday_schedule())
    return BookingService(db, clock, side_effects=side_effects).book(
        mentor_id=mentor_id,
        mentee_id=mentee_id,
        slot_start=SLOT,
        rate=Decimal("100.00"),
    )


def _sessions_at(open_session, instant):
    db = open_session()
    return db.query(MentoringSession).filter(MentoringSession.scheduled_at == instant).all()


def _active_requests(open_session, session_id):
    db = open_session()
    return (
        db.query(RescheduleRequest)
        .filter(
            RescheduleRequest.session_id == session_id,
            RescheduleRequest.status.in_(ACTIVE_RESCHEDULE_STATUSES),
        )
        .all()
    )


class TestAcceptAgainstBooking:
    def test_accept_committed_mid_booking_wins_the_slot(
        self, open_session, clock, side_effects, booked, mentor_id, mentee_id, monkeypatch
    ):
        request = RescheduleService(open_session(), clock, side_effects=side_effects).initiate(
            booked.id, mentee_id, TARGET
        )
        mentor_side = RescheduleService(open_session(), clock, side_effects=side_effects)
        booking = BookingService(open_session(), clock, side_effects=side_effects)

        real_busy_around = booking.availability.busy_around
        accepted = []

        def busy_then_accept(*args, **kwargs):
            busy = real_busy_around(*args, **kwargs)
            if not accepted:
                accepted.append(
                    mentor_side.respond(request.id, mentor_id, RescheduleAction.ACCEPT)
                )
            return busy

        monkeypatch.setattr(booking.availability, "busy_around", busy_then_accept)

        with pytest.raises(SlotTaken):
            booking.book(
                mentor_id=mentor_id,
                mentee_id=generate_ulid(),
                slot_start=TARGET,
                rate=Decimal("80.00"),
            )

        assert accepted[0].status == RescheduleStatus.ACCEPTED
        assert [s.id for s in _sessions_at(open_session, TARGET)] == [booked.id]

    def test_booking_committed_mid_accept_keeps_the_session_in_place(
        self, open_session, clock, side_effects, booked, mentor_id, mentee_id, monkeypatch
    ):
        request = RescheduleService(open_session(), clock, side_effects=side_effects).initiate(
            booked.id, mentee_id, TARGET
        )
        mentor_side = RescheduleService(open_session(), clock, side_effects=side_effects)
        booking = BookingService(open_session(), clock, side_effects=side_effects)
        other_mentee = generate_ulid()

        real_busy_around = mentor_side.availability.busy_around
        competing = []

        def busy_then_book(*args, **kwargs):
            busy = real_busy_around(*args, **kwargs)
            if not competing:
                competing.append(
                    booking.book(
                        mentor_id=mentor_id,
                        mentee_id=other_mentee,
                        slot_start=TARGET,
                        rate=Decimal("80.00"),
                    )
                )
            return busy

        monkeypatch.setattr(mentor_side.availability, "busy_around", busy_then_book)

        with pytest.raises(SlotTaken):
            mentor_side.respond(request.id, mentor_id, RescheduleAction.ACCEPT)

        at_target = _sessions_at(open_session, TARGET)
        assert [s.mentee_id for s in at_target] == [other_mentee]
        assert _sessions_at(open_session, SLOT)[0].id == booked.id
        pending = _active_requests(open_session, booked.id)
        assert [r.id for r in pending] == [request.id]
        assert pending[0].status == RescheduleStatus.PENDING


class TestSimultaneousInitiate:
    def test_second_initiate_after_the_existence_check_is_rejected(
        self, open_session, clock, side_effects, booked, mentor_id, mentee_id, monkeypatch
    ):
        mentee_side = RescheduleService(open_session(), clock, side_effects=side_effects)
        mentor_side = RescheduleService(open_session(), clock, side_effects=side_effects)

        real_lookup = mentee_side.repo.get_active_for_session
        raced = []

        def lookup_then_race(session_id):
            existing = real_lookup(session_id)
            if not raced:
                raced.append(mentor_side.initiate(session_id, mentor_id, at(WEDNESDAY, 10, 15)))
            return existing

        monkeypatch.setattr(mentee_side.repo, "get_active_for_session", lookup_then_race)

        with pytest.raises(RequestAlreadyActive):
            mentee_side.initiate(booked.id, mentee_id, TARGET)

        active = _active_requests(open_session, booked.id)
        assert [r.id for r in active] == [raced[0].id]
        assert active[0].initiated_by == "mentor"
