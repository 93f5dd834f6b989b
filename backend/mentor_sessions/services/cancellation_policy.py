# backend/mentor_sessions/services/cancellation_policy.py
"""
Pure cancellation and refund policy.

Refund tiers for a cancellation at `now` of a session scheduled at
`scheduled_at`:

    mentor cancels                          -> 100%
    session already started                 -> 0%
    hours_until >= free_cancellation_hours  -> 100%
    hours_until >= cancellation_cutoff      -> partial_refund_percentage
    otherwise                               -> late_cancellation_refund_percentage

Amounts are rounded to cents, half-up.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from ..core.enums import ParticipantRole
from ..core.exceptions import PolicyViolation, ValidationException
from ..core.timezone_utils import ensure_utc, hours_until

CENTS = Decimal("0.01")
FULL_REFUND = 100

Numeric = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class CancellationPolicy:
    free_cancellation_hours: float
    cancellation_cutoff_hours: float
    partial_refund_percentage: int
    late_cancellation_refund_percentage: int

    def __post_init__(self) -> None:
        for name in ("partial_refund_percentage", "late_cancellation_refund_percentage"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValidationException(
                    f"{name} must be between 0 and 100",
                    code="INVALID_POLICY",
                    details={name: value},
                )
        if self.free_cancellation_hours < 0 or self.cancellation_cutoff_hours < 0:
            raise ValidationException("Policy hours must be non-negative", code="INVALID_POLICY")


@dataclass(frozen=True)
class RefundDecision:
    percentage: int
    amount: Decimal
    hours_until: float
    tier: str


def refund_amount(rate: Numeric, percentage: int) -> Decimal:
    """rate * percentage / 100, rounded to cents half-up."""
    if not 0 <= percentage <= 100:
        raise ValidationException(
            "Refund percentage must be between 0 and 100",
            code="INVALID_REFUND_PERCENTAGE",
            details={"percentage": percentage},
        )
    value = Decimal(str(rate))
    if value < 0:
        raise ValidationException("Rate must be non-negative", code="INVALID_RATE")
    return (value * Decimal(percentage) / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_refund(
    role: ParticipantRole,
    rate: Numeric,
    scheduled_at: datetime,
    now: datetime,
    policy: CancellationPolicy,
) -> RefundDecision:
    """Refund owed to the mentee when `role` cancels at `now`."""
    remaining = hours_until(scheduled_at, now)

    if role == ParticipantRole.MENTOR:
        percentage, tier = FULL_REFUND, "mentor"
    elif ensure_utc(scheduled_at) <= ensure_utc(now):
        percentage, tier = 0, "started"
    elif remaining >= policy.free_cancellation_hours:
        percentage, tier = FULL_REFUND, "free"
    elif remaining >= policy.cancellation_cutoff_hours:
        percentage, tier = policy.partial_refund_percentage, "partial"
    else:
        percentage, tier = policy.late_cancellation_refund_percentage, "late"

    return RefundDecision(
        percentage=percentage,
        amount=refund_amount(rate, percentage),
        hours_until=remaining,
        tier=tier,
    )


def full_refund(rate: Numeric, scheduled_at: datetime, now: datetime, tier: str) -> RefundDecision:
    """Unconditional 100% refund for cutoff-exempt cancellation paths."""
    return RefundDecision(
        percentage=FULL_REFUND,
        amount=refund_amount(rate, FULL_REFUND),
        hours_until=hours_until(scheduled_at, now),
        tier=tier,
    )


def check_cutoff(
    action: str,
    role: ParticipantRole,
    cutoff_hours: float,
    scheduled_at: datetime,
    now: datetime,
) -> float:
    """Raise PolicyViolation unless at least cutoff_hours remain. Returns hours remaining."""
    remaining = hours_until(scheduled_at, now)
    if remaining < cutoff_hours:
        raise PolicyViolation(
            f"A {role.value} must {action} at least {cutoff_hours:g} hours before the session",
            cutoff_hours=cutoff_hours,
            hours_until=remaining,
            details={"action": action, "role": role.value},
        )
    return remaining
