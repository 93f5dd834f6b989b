"""Time and request helpers shared by the test modules."""

from datetime import date, datetime, timedelta, timezone
from typing import List

from mentor_sessions.integrations import FakeNotificationGateway
from mentor_sessions.schemas.availability import ScheduleUpsert, TimeBlockSchema, WeeklyPatternIn

# Monday 2025-06-02 08:00 UTC
BASE_NOW = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)
MONDAY = BASE_NOW.date()
TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)
THURSDAY = MONDAY + timedelta(days=3)
SATURDAY = MONDAY + timedelta(days=5)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC instant on a date."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


def weekday_schedule(**overrides) -> ScheduleUpsert:
    """Mon-Fri 09:00-17:00 UTC, 60 minute sessions with a 15 minute buffer."""
    data = {
        "timezone": "UTC",
        "default_session_duration": 60,
        "buffer_minutes": 15,
        "min_advance_booking_hours": 24,
        "max_advance_booking_days": 90,
        "weekly_patterns": [
            WeeklyPatternIn(
                day_of_week=day,
                time_blocks=[TimeBlockSchema(start="09:00", end="17:00")],
            )
            for day in range(1, 6)
        ],
    }
    data.update(overrides)
    return ScheduleUpsert(**data)


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def events_for(notifications: FakeNotificationGateway, user_id: str) -> List[str]:
    return [record["event"] for record in notifications.sent if record["user_id"] == user_id]


def iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def parse_instant(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
