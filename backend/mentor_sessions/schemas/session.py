# backend/mentor_sessions/schemas/session.py
"""Session booking, lifecycle and audit schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from ..core.enums import CancellationReasonCategory
from ..models.session import SessionStatus
from ._strict_base import StrictModel, StrictRequestModel


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("Datetime must include a timezone offset")
    return value


class SessionBookRequest(StrictRequestModel):
    """Book a slot on behalf of the calling mentee."""

    mentor_id: str = Field(..., min_length=1, max_length=26)
    slot_start: datetime = Field(..., description="Absolute slot start (with offset)")
    duration_minutes: Optional[int] = Field(default=None, gt=0, le=480)
    rate: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    title: Optional[str] = Field(default=None, max_length=200)
    meeting_type: Optional[Literal["video", "audio", "in_person"]] = None
    meeting_url: Optional[str] = Field(default=None, max_length=2000)
    location: Optional[str] = Field(default=None, max_length=500)

    @field_validator("slot_start")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return _require_aware(v)

    @field_validator("currency")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    def meeting_details(self) -> Dict[str, Any]:
        return self.model_dump(
            include={"title", "meeting_type", "meeting_url", "location"},
            exclude_none=True,
        )


class SessionCancelRequest(StrictRequestModel):
    reason_category: Optional[CancellationReasonCategory] = None
    reason_details: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("reason_details")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None


class SessionResponse(StrictModel):
    id: str
    mentor_id: str
    mentee_id: str
    title: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: int
    status: SessionStatus
    rate: Decimal
    currency: str
    meeting_type: Optional[str] = None
    meeting_url: Optional[str] = None
    location: Optional[str] = None
    requires_confirmation: bool
    mentee_reschedule_count: int
    mentor_reschedule_count: int
    cancelled_by: Optional[str] = None
    cancellation_reason_category: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    refund_percentage: Optional[int] = None
    refund_amount: Optional[Decimal] = None
    no_show_marked_by: Optional[str] = None
    no_show_marked_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: datetime


class SessionAuditEntryResponse(StrictModel):
    id: str
    session_id: str
    actor_id: Optional[str] = None
    actor_role: str
    action: str
    reason_category: Optional[str] = None
    reason_details: Optional[str] = None
    previous_scheduled_at: Optional[datetime] = None
    new_scheduled_at: Optional[datetime] = None
    policy_snapshot: Optional[Dict[str, Any]] = None
    created_at: datetime


class SessionAuditListResponse(StrictModel):
    session_id: str
    entries: List[SessionAuditEntryResponse]
