# backend/mentor_sessions/schemas/__init__.py
"""Pydantic schemas for the scheduling engine API."""

from .availability import (
    ExceptionCreate,
    ExceptionResponse,
    RuleCreate,
    RuleResponse,
    RuleUpdate,
    ScheduleResponse,
    ScheduleUpsert,
    TimeBlockSchema,
    WeeklyPatternIn,
    WeeklyPatternUpdate,
)
from .policy import SessionPolicySet, SessionPolicyUpdate
from .reschedule import RescheduleInitiate, RescheduleRequestResponse, RescheduleRespond
from .session import (
    SessionAuditListResponse,
    SessionBookRequest,
    SessionCancelRequest,
    SessionResponse,
)
from .slots import SlotListResponse, SlotResponse

__all__ = [
    "ExceptionCreate",
    "ExceptionResponse",
    "RescheduleInitiate",
    "RescheduleRequestResponse",
    "RescheduleRespond",
    "RuleCreate",
    "RuleResponse",
    "RuleUpdate",
    "ScheduleResponse",
    "ScheduleUpsert",
    "SessionAuditListResponse",
    "SessionBookRequest",
    "SessionCancelRequest",
    "SessionPolicySet",
    "SessionPolicyUpdate",
    "SessionResponse",
    "SlotListResponse",
    "SlotResponse",
    "TimeBlockSchema",
    "WeeklyPatternIn",
    "WeeklyPatternUpdate",
]
