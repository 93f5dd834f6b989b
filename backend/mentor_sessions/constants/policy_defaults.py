"""
Default session policy values.

Stored policies in the session_policies table override these per key.
"""

from typing import Any, Dict

MENTEE_CANCELLATION_CUTOFF_HOURS = 2
MENTEE_RESCHEDULE_CUTOFF_HOURS = 4
MENTEE_MAX_RESCHEDULES_PER_SESSION = 2

MENTOR_CANCELLATION_CUTOFF_HOURS = 1
MENTOR_RESCHEDULE_CUTOFF_HOURS = 2
MENTOR_MAX_RESCHEDULES_PER_SESSION = 2

FREE_CANCELLATION_HOURS = 24
PARTIAL_REFUND_PERCENTAGE = 50
LATE_CANCELLATION_REFUND_PERCENTAGE = 0
REQUIRE_CANCELLATION_REASON = False

RESCHEDULE_REQUEST_EXPIRY_HOURS = 48
MAX_COUNTER_PROPOSALS = 3

NO_SHOW_WINDOW_HOURS = 24

# Rules created without an explicit priority
RULE_DEFAULT_PRIORITY = 0
GLOBAL_RULE_DEFAULT_PRIORITY = -1

DEFAULT_SESSION_POLICIES: Dict[str, Any] = {
    "mentee": {
        "cancellation_cutoff_hours": MENTEE_CANCELLATION_CUTOFF_HOURS,
        "reschedule_cutoff_hours": MENTEE_RESCHEDULE_CUTOFF_HOURS,
        "max_reschedules_per_session": MENTEE_MAX_RESCHEDULES_PER_SESSION,
    },
    "mentor": {
        "cancellation_cutoff_hours": MENTOR_CANCELLATION_CUTOFF_HOURS,
        "reschedule_cutoff_hours": MENTOR_RESCHEDULE_CUTOFF_HOURS,
        "max_reschedules_per_session": MENTOR_MAX_RESCHEDULES_PER_SESSION,
    },
    "refunds": {
        "free_cancellation_hours": FREE_CANCELLATION_HOURS,
        "partial_refund_percentage": PARTIAL_REFUND_PERCENTAGE,
        "late_cancellation_refund_percentage": LATE_CANCELLATION_REFUND_PERCENTAGE,
        "require_cancellation_reason": REQUIRE_CANCELLATION_REASON,
    },
    "negotiation": {
        "reschedule_request_expiry_hours": RESCHEDULE_REQUEST_EXPIRY_HOURS,
        "max_counter_proposals": MAX_COUNTER_PROPOSALS,
    },
    "lifecycle": {
        "no_show_window_hours": NO_SHOW_WINDOW_HOURS,
    },
}
