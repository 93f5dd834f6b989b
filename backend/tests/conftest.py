"""
Shared fixtures: in-memory SQLite database, a controllable clock, recording
collaborators and a mentor with a Mon-Fri 09:00-17:00 schedule.
"""

from datetime import datetime
from decimal import Decimal
import os
from typing import Callable, Optional

# Must be set before the application modules build their engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PROMETHEUS_ENABLED", "true")

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mentor_sessions.api.dependencies import get_clock, get_db, get_side_effects
from mentor_sessions.core.ulid_helper import generate_ulid
from mentor_sessions.database import Base, build_engine, init_db
from mentor_sessions.integrations import (
    FakeNotificationGateway,
    FakePaymentGateway,
    FakeVideoRoomGateway,
)
from mentor_sessions.main import app
from mentor_sessions.models.availability import AvailabilitySchedule
from mentor_sessions.models.session import MentoringSession
from mentor_sessions.services.availability_service import AvailabilityService
from mentor_sessions.services.booking_service import BookingService
from mentor_sessions.services.policy_service import PolicyService
from mentor_sessions.services.reschedule_service import RescheduleService
from mentor_sessions.services.session_lifecycle_service import SessionLifecycleService
from mentor_sessions.services.side_effects import SideEffectDispatcher

from .helpers import BASE_NOW, FixedClock, weekday_schedule

test_engine = build_engine("sqlite://", poolclass=StaticPool)
TestSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False
)


@pytest.fixture(scope="function")
def db():
    """Fresh schema and session for each test."""
    init_db(test_engine)
    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(BASE_NOW)


@pytest.fixture
def payments() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def notifications() -> FakeNotificationGateway:
    return FakeNotificationGateway()


@pytest.fixture
def video() -> FakeVideoRoomGateway:
    return FakeVideoRoomGateway()


@pytest.fixture
def side_effects(payments, notifications, video) -> SideEffectDispatcher:
    return SideEffectDispatcher(payment=payments, notifications=notifications, video=video)


@pytest.fixture
def mentor_id() -> str:
    return generate_ulid()


@pytest.fixture
def mentee_id() -> str:
    return generate_ulid()


@pytest.fixture
def outsider_id() -> str:
    return generate_ulid()


@pytest.fixture
def availability_service(db: Session, clock: FixedClock) -> AvailabilityService:
    return AvailabilityService(db, clock)


@pytest.fixture
def schedule(availability_service, mentor_id) -> AvailabilitySchedule:
    return availability_service.upsert_schedule(mentor_id, weekday_schedule())


@pytest.fixture
def policy_service(db: Session, clock: FixedClock) -> PolicyService:
    return PolicyService(db, clock)


@pytest.fixture
def booking_service(db: Session, clock: FixedClock, side_effects) -> BookingService:
    return BookingService(db, clock, side_effects=side_effects)


@pytest.fixture
def lifecycle_service(db: Session, clock: FixedClock, side_effects) -> SessionLifecycleService:
    return SessionLifecycleService(db, clock, side_effects=side_effects)


@pytest.fixture
def reschedule_service(db: Session, clock: FixedClock, side_effects) -> RescheduleService:
    return RescheduleService(db, clock, side_effects=side_effects)


@pytest.fixture
def book(booking_service, schedule, mentor_id, mentee_id) -> Callable[..., MentoringSession]:
    """Book a slot for the default mentee (or another one)."""

    def _book(
        slot_start: datetime, mentee: Optional[str] = None, rate: str = "100.00"
    ) -> MentoringSession:
        return booking_service.book(
            mentor_id=mentor_id,
            mentee_id=mentee or mentee_id,
            slot_start=slot_start,
            rate=Decimal(rate),
        )

    return _book


@pytest.fixture
def client(db: Session, clock: FixedClock, side_effects: SideEffectDispatcher):
    """Create a test client bound to the test database, clock and collaborators."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_side_effects] = lambda: side_effects

    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()
