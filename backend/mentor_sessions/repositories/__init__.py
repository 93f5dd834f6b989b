# backend/mentor_sessions/repositories/__init__.py
"""
Repository layer for the scheduling engine.

Repositories own all queries; services own transaction boundaries.
"""

from .audit_repository import SessionAuditRepository
from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .reschedule_repository import RescheduleRequestRepository
from .session_policy_repository import SessionPolicyRepository
from .session_repository import SessionRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "RescheduleRequestRepository",
    "SessionAuditRepository",
    "SessionPolicyRepository",
    "SessionRepository",
]
