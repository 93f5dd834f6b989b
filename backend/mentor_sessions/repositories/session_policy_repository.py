"""Repository for stored session policy sections."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, cast

from sqlalchemy.orm import Session

from ..models.session_policy import SessionPolicyRecord


class SessionPolicyRepository:
    """Data access helper for session policy key/value records."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_key(self, key: str) -> Optional[SessionPolicyRecord]:
        result = self.db.query(SessionPolicyRecord).filter(SessionPolicyRecord.key == key).first()
        return cast(Optional[SessionPolicyRecord], result)

    def get_all(self) -> Dict[str, Dict[str, Any]]:
        records = self.db.query(SessionPolicyRecord).all()
        return {record.key: dict(record.value_json or {}) for record in records}

    def upsert(
        self, *, key: str, value: Mapping[str, Any], updated_at: datetime
    ) -> SessionPolicyRecord:
        record = self.get_by_key(key)
        if record is None:
            record = SessionPolicyRecord(key=key, value_json=dict(value), updated_at=updated_at)
            self.db.add(record)
        else:
            record.value_json = dict(value)
            record.updated_at = updated_at
        self.db.flush()
        return record


__all__ = ["SessionPolicyRepository"]
