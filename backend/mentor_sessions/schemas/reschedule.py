"""Reschedule negotiation schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator, model_validator

from ..core.enums import RescheduleAction
from ..models.reschedule_request import RescheduleStatus
from ._strict_base import StrictModel, StrictRequestModel


class RescheduleInitiate(StrictRequestModel):
    proposed_time: datetime
    proposed_duration: Optional[int] = Field(default=None, gt=0, le=480)

    @field_validator("proposed_time")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.tzinfo.utcoffset(v) is None:
            raise ValueError("proposed_time must include a timezone offset")
        return v


class RescheduleRespond(StrictRequestModel):
    action: RescheduleAction
    counter_proposed_time: Optional[datetime] = None
    note: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _check_counter_time(self) -> "RescheduleRespond":
        if self.action == RescheduleAction.COUNTER_PROPOSE:
            if self.counter_proposed_time is None:
                raise ValueError("counter_proposed_time is required to counter-propose")
            tz = self.counter_proposed_time.tzinfo
            if tz is None or tz.utcoffset(self.counter_proposed_time) is None:
                raise ValueError("counter_proposed_time must include a timezone offset")
        elif self.counter_proposed_time is not None:
            raise ValueError("counter_proposed_time is only valid with counter_propose")
        return self


class RescheduleRequestResponse(StrictModel):
    id: str
    session_id: str
    initiated_by: str
    initiator_id: str
    status: RescheduleStatus
    original_time: datetime
    proposed_time: datetime
    proposed_duration: Optional[int] = None
    counter_proposed_time: Optional[datetime] = None
    counter_proposed_by: Optional[str] = None
    counter_proposal_count: int
    expires_at: datetime
    resolved_by: Optional[str] = None
    resolver_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
