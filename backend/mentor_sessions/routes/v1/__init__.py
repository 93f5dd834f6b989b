# backend/mentor_sessions/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import availability, monitoring, policies, reschedule, sessions

__all__ = [
    "availability",
    "monitoring",
    "policies",
    "reschedule",
    "sessions",
]
