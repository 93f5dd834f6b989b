# backend/mentor_sessions/core/enums.py
"""
Core enums for the mentor session scheduling engine.

String-valued so they serialize directly into JSON payloads and database
columns.
"""

from enum import Enum


class ParticipantRole(str, Enum):
    """The side of a session an actor is on."""

    MENTOR = "mentor"
    MENTEE = "mentee"


class AuditActorRole(str, Enum):
    MENTOR = "mentor"
    MENTEE = "mentee"
    SYSTEM = "system"


class BookingMode(str, Enum):
    INSTANT = "instant"
    REQUIRES_CONFIRMATION = "requires_confirmation"


class TimeBlockKind(str, Enum):
    """Kinds of time blocks inside a weekly pattern or exception."""

    AVAILABLE = "AVAILABLE"
    BREAK = "BREAK"
    BUFFER = "BUFFER"
    BLOCKED = "BLOCKED"


class ExceptionKind(str, Enum):
    """Why a date range departs from the weekly pattern."""

    UNAVAILABLE = "unavailable"
    MODIFIED_HOURS = "modified_hours"
    SPECIAL_AVAILABILITY = "special_availability"


class CancellationReasonCategory(str, Enum):
    SCHEDULE_CONFLICT = "schedule_conflict"
    PERSONAL_EMERGENCY = "personal_emergency"
    NO_LONGER_NEEDED = "no_longer_needed"
    FOUND_ALTERNATIVE = "found_alternative"
    TECHNICAL_ISSUES = "technical_issues"
    OTHER = "other"
    RESCHEDULE_RESPONSE_CANCEL = "reschedule_response_cancel"


class AuditAction(str, Enum):
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"


class RescheduleAction(str, Enum):
    """Responses available to the party whose turn it is."""

    ACCEPT = "accept"
    REJECT = "reject"
    COUNTER_PROPOSE = "counter_propose"
    CANCEL_SESSION = "cancel_session"
