"""Session policy schemas (stored per section in session_policies)."""

from typing import Any, Dict, Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class RolePolicy(StrictModel):
    cancellation_cutoff_hours: float = Field(..., ge=0, le=24 * 14)
    reschedule_cutoff_hours: float = Field(..., ge=0, le=24 * 14)
    max_reschedules_per_session: int = Field(..., ge=0, le=20)


class RefundPolicy(StrictModel):
    free_cancellation_hours: float = Field(..., ge=0, le=24 * 30)
    partial_refund_percentage: int = Field(..., ge=0, le=100)
    late_cancellation_refund_percentage: int = Field(..., ge=0, le=100)
    require_cancellation_reason: bool = False


class NegotiationPolicy(StrictModel):
    reschedule_request_expiry_hours: float = Field(..., gt=0, le=24 * 30)
    max_counter_proposals: int = Field(..., ge=0, le=20)


class LifecyclePolicy(StrictModel):
    no_show_window_hours: float = Field(..., gt=0, le=24 * 7)


class SessionPolicySet(StrictModel):
    mentee: RolePolicy
    mentor: RolePolicy
    refunds: RefundPolicy
    negotiation: NegotiationPolicy
    lifecycle: LifecyclePolicy


class SessionPolicyUpdate(StrictRequestModel):
    """Partial update; each section merges over the stored values."""

    mentee: Optional[Dict[str, Any]] = None
    mentor: Optional[Dict[str, Any]] = None
    refunds: Optional[Dict[str, Any]] = None
    negotiation: Optional[Dict[str, Any]] = None
    lifecycle: Optional[Dict[str, Any]] = None
