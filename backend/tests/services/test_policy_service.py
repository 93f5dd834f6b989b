import pytest

from mentor_sessions.core.enums import ParticipantRole
from mentor_sessions.core.exceptions import ValidationException
from mentor_sessions.schemas.policy import SessionPolicyUpdate
from mentor_sessions.services.policy_service import PolicyService


def test_defaults(policy_service):
    policies = policy_service.get_policies()

    assert policies.mentee.cancellation_cutoff_hours == 2
    assert policies.mentee.reschedule_cutoff_hours == 4
    assert policies.mentor.cancellation_cutoff_hours == 1
    assert policies.mentor.reschedule_cutoff_hours == 2
    assert policies.refunds.free_cancellation_hours == 24
    assert policies.refunds.partial_refund_percentage == 50
    assert policies.negotiation.reschedule_request_expiry_hours == 48
    assert policies.negotiation.max_counter_proposals == 3
    assert policies.lifecycle.no_show_window_hours == 24


def test_partial_update_merges_over_defaults(policy_service):
    policy_service.update_policies(
        SessionPolicyUpdate(mentee={"cancellation_cutoff_hours": 6}, refunds={"partial_refund_percentage": 70})
    )

    policies = policy_service.get_policies()
    assert policies.mentee.cancellation_cutoff_hours == 6
    assert policies.mentee.reschedule_cutoff_hours == 4
    assert policies.refunds.partial_refund_percentage == 70
    assert policies.refunds.free_cancellation_hours == 24


def test_invalid_values_are_rejected(policy_service):
    with pytest.raises(ValidationException) as exc_info:
        policy_service.update_policies(SessionPolicyUpdate(refunds={"partial_refund_percentage": 150}))

    assert exc_info.value.code == "INVALID_POLICY"
    assert policy_service.get_policies().refunds.partial_refund_percentage == 50


def test_unknown_keys_are_rejected(policy_service):
    with pytest.raises(ValidationException):
        policy_service.update_policies(SessionPolicyUpdate(negotiation={"max_rounds": 5}))


def test_cancellation_policy_uses_role_cutoff(policy_service):
    policies = policy_service.get_policies()

    mentor = PolicyService.cancellation_policy_for(policies, ParticipantRole.MENTOR)
    mentee = PolicyService.cancellation_policy_for(policies, ParticipantRole.MENTEE)

    assert mentor.cancellation_cutoff_hours == 1
    assert mentee.cancellation_cutoff_hours == 2
    assert mentee.free_cancellation_hours == 24
