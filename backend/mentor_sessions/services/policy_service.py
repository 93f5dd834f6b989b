"""Service helpers for session policy configuration."""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..constants.policy_defaults import DEFAULT_SESSION_POLICIES
from ..core.enums import ParticipantRole
from ..core.exceptions import ValidationException
from ..repositories.session_policy_repository import SessionPolicyRepository
from ..schemas.policy import RolePolicy, SessionPolicySet, SessionPolicyUpdate
from .base import BaseService, Clock
from .cancellation_policy import CancellationPolicy

POLICY_SECTIONS = ("mentee", "mentor", "refunds", "negotiation", "lifecycle")


class PolicyService(BaseService):
    """Reads and writes the policy set; stored sections merge over defaults."""

    def __init__(self, db: Session, clock: Optional[Clock] = None) -> None:
        super().__init__(db, clock)
        self.repo = SessionPolicyRepository(db)

    def get_policies(self) -> SessionPolicySet:
        merged = deepcopy(DEFAULT_SESSION_POLICIES)
        for key, value in self.repo.get_all().items():
            if key in merged:
                merged[key].update(value)
        return SessionPolicySet.model_validate(merged)

    @BaseService.measure_operation("update_session_policies")
    def update_policies(self, payload: SessionPolicyUpdate) -> SessionPolicySet:
        current = self.get_policies().model_dump()
        changes = payload.model_dump(exclude_none=True)
        for section, values in changes.items():
            current[section].update(values)

        try:
            validated = SessionPolicySet.model_validate(current)
        except ValidationError as exc:
            raise ValidationException(
                "Invalid session policy",
                code="INVALID_POLICY",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            )

        now = self.now()
        with self.transaction():
            dumped = validated.model_dump()
            for section in changes:
                self.repo.upsert(key=section, value=dumped[section], updated_at=now)

        self.log_operation("update_session_policies", sections=sorted(changes))
        return validated

    @staticmethod
    def role_policy(policies: SessionPolicySet, role: ParticipantRole) -> RolePolicy:
        return policies.mentor if role == ParticipantRole.MENTOR else policies.mentee

    @staticmethod
    def cancellation_policy_for(
        policies: SessionPolicySet, role: ParticipantRole
    ) -> CancellationPolicy:
        role_policy = PolicyService.role_policy(policies, role)
        return CancellationPolicy(
            free_cancellation_hours=policies.refunds.free_cancellation_hours,
            cancellation_cutoff_hours=role_policy.cancellation_cutoff_hours,
            partial_refund_percentage=policies.refunds.partial_refund_percentage,
            late_cancellation_refund_percentage=(
                policies.refunds.late_cancellation_refund_percentage
            ),
        )

    @staticmethod
    def snapshot(
        policies: SessionPolicySet, role: ParticipantRole, **extra: Any
    ) -> Dict[str, Any]:
        """Policy values in force for an audited decision."""
        role_policy = PolicyService.role_policy(policies, role)
        data: Dict[str, Any] = {
            "role": role.value,
            **role_policy.model_dump(),
            **policies.refunds.model_dump(),
            **policies.negotiation.model_dump(),
        }
        data.update(extra)
        return data
