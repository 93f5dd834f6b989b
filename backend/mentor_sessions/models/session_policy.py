"""Database model for session policy configuration."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Text

from ..database import Base
from .types import UTCDateTime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SessionPolicyRecord(Base):
    """Key/value policy section stored as JSON (mentee, mentor, refunds, ...)."""

    __tablename__ = "session_policies"

    key = Column(Text, primary_key=True, nullable=False)
    value_json = Column(JSON, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False, default=_now_utc, onupdate=_now_utc)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SessionPolicyRecord key={self.key}>"


__all__ = ["SessionPolicyRecord"]
