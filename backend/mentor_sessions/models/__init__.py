"""
Database models for the mentor session scheduling engine.

- Availability: schedules, weekly patterns, exceptions and rules
- Sessions and their reschedule negotiations
- Session audit trail
- Stored session policies
"""

from .availability import (
    AvailabilityException,
    AvailabilityRule,
    AvailabilitySchedule,
    WeeklyPattern,
)
from .reschedule_request import ACTIVE_RESCHEDULE_STATUSES, RescheduleRequest, RescheduleStatus
from .session import MentoringSession, SessionStatus
from .session_audit_log import SessionAuditLogEntry
from .session_policy import SessionPolicyRecord

__all__ = [
    "ACTIVE_RESCHEDULE_STATUSES",
    "AvailabilityException",
    "AvailabilityRule",
    "AvailabilitySchedule",
    "MentoringSession",
    "RescheduleRequest",
    "RescheduleStatus",
    "SessionAuditLogEntry",
    "SessionPolicyRecord",
    "SessionStatus",
    "WeeklyPattern",
]
