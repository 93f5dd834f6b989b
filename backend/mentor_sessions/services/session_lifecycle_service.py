# backend/mentor_sessions/services/session_lifecycle_service.py
"""
Session Lifecycle Service

The only component that changes a session's state or time:

    scheduled -> in_progress -> completed
    scheduled -> cancelled
    scheduled -> no_show

Any other transition raises InvalidTransition. Role- and time-based guards
raise PolicyViolation carrying the cutoff that was missed. The reschedule
negotiation calls apply_reschedule and cancel_for_reschedule from inside
its own transaction; everything else here owns its transaction.
"""

from datetime import datetime, timedelta
import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import AuditActorRole, CancellationReasonCategory, ParticipantRole
from ..core.exceptions import (
    ForbiddenException,
    InvalidTransition,
    NotFound,
    PolicyViolation,
    ValidationException,
)
from ..models.reschedule_request import RescheduleStatus
from ..models.session import MentoringSession, SessionStatus
from ..repositories.reschedule_repository import RescheduleRequestRepository
from ..repositories.session_repository import SessionRepository
from ..schemas.policy import SessionPolicySet
from .audit_service import AuditService
from .base import BaseService, Clock
from .cancellation_policy import RefundDecision, check_cutoff, compute_refund, full_refund
from .policy_service import PolicyService
from .side_effects import SideEffectDispatcher

logger = logging.getLogger(__name__)


class SessionLifecycleService(BaseService):
    """State machine for mentoring sessions."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        side_effects: Optional[SideEffectDispatcher] = None,
        audit_service: Optional[AuditService] = None,
        policy_service: Optional[PolicyService] = None,
    ):
        super().__init__(db, clock)
        self.repo = SessionRepository(db)
        self.reschedule_repo = RescheduleRequestRepository(db)
        self.side_effects = side_effects or SideEffectDispatcher()
        self.audit = audit_service or AuditService(db, self.clock)
        self.policies = policy_service or PolicyService(db, self.clock)

    # Lookups

    def get_session(self, session_id: str) -> MentoringSession:
        session = self.repo.get_by_id(session_id)
        if session is None:
            raise NotFound("Session", session_id)
        return session

    def get_for_participant(
        self, session_id: str, actor_id: str
    ) -> Tuple[MentoringSession, ParticipantRole]:
        session = self.get_session(session_id)
        role = session.role_of(actor_id)
        if role is None:
            raise ForbiddenException(
                "You are not a participant in this session",
                code="NOT_A_PARTICIPANT",
                details={"session_id": session_id},
            )
        return session, role

    def _invalid_transition(
        self, session: MentoringSession, attempted: str, message: Optional[str] = None
    ) -> InvalidTransition:
        self.logger.warning(
            "Invalid session transition: %s from %s",
            attempted,
            session.status,
            extra={"session_id": session.id, "status": session.status, "attempted": attempted},
        )
        return InvalidTransition("session", session.status, attempted, message)

    # Guards shared with the negotiation flow

    def check_reschedule_allowed(
        self,
        session: MentoringSession,
        role: ParticipantRole,
        now: datetime,
        policies: SessionPolicySet,
    ) -> None:
        if not session.is_scheduled:
            raise self._invalid_transition(session, "reschedule")

        role_policy = PolicyService.role_policy(policies, role)
        check_cutoff(
            "reschedule", role, role_policy.reschedule_cutoff_hours, session.scheduled_at, now
        )

        used = session.reschedule_count_for(role)
        if used >= role_policy.max_reschedules_per_session:
            raise PolicyViolation(
                f"A {role.value} may reschedule a session at most "
                f"{role_policy.max_reschedules_per_session} times",
                details={
                    "role": role.value,
                    "reschedules_used": used,
                    "max_reschedules_per_session": role_policy.max_reschedules_per_session,
                },
            )

    # In-transaction mutations used by the negotiation flow

    def apply_reschedule(
        self,
        session: MentoringSession,
        new_time: datetime,
        initiator: ParticipantRole,
        duration_minutes: Optional[int] = None,
    ) -> None:
        """Move a scheduled session; increments the initiator's counter."""
        if not session.is_scheduled:
            raise self._invalid_transition(session, "reschedule")
        session.move_to(new_time, initiator)
        if duration_minutes:
            session.duration_minutes = duration_minutes
        self.db.flush()

    def cancel_for_reschedule(
        self,
        session: MentoringSession,
        actor_id: str,
        role: ParticipantRole,
        now: datetime,
        policies: SessionPolicySet,
        reason_details: Optional[str] = None,
    ) -> RefundDecision:
        """Cutoff-exempt cancellation in answer to a reschedule request; always 100%."""
        if not session.is_scheduled:
            raise self._invalid_transition(session, "cancel")

        decision = full_refund(
            session.rate,
            session.scheduled_at,
            now,
            tier=CancellationReasonCategory.RESCHEDULE_RESPONSE_CANCEL.value,
        )
        self._finalize_cancellation(
            session,
            actor_id=actor_id,
            role=role,
            now=now,
            decision=decision,
            reason_category=CancellationReasonCategory.RESCHEDULE_RESPONSE_CANCEL.value,
            reason_details=reason_details,
            policies=policies,
        )
        return decision

    def _finalize_cancellation(
        self,
        session: MentoringSession,
        *,
        actor_id: str,
        role: ParticipantRole,
        now: datetime,
        decision: RefundDecision,
        reason_category: Optional[str],
        reason_details: Optional[str],
        policies: SessionPolicySet,
    ) -> None:
        self.audit.record_cancellation(
            session,
            actor_id=actor_id,
            actor_role=role.value,
            reason_category=reason_category,
            reason_details=reason_details,
            policy_snapshot=PolicyService.snapshot(
                policies,
                role,
                refund_percentage=decision.percentage,
                refund_amount=str(decision.amount),
                refund_tier=decision.tier,
                hours_until=round(decision.hours_until, 2),
            ),
        )
        session.cancel(
            role=role,
            at=now,
            reason_category=reason_category,
            reason=reason_details,
            refund_percentage=decision.percentage,
            refund_amount=decision.amount,
        )
        self.db.flush()

    def _close_active_request(
        self,
        session: MentoringSession,
        role: Optional[ParticipantRole],
        actor_id: str,
        now: datetime,
        note: str,
    ) -> None:
        active = self.reschedule_repo.get_active_for_session(session.id)
        if active is None:
            return
        active.resolve(RescheduleStatus.CANCELLED, role, actor_id, now, note=note)
        active.cancellation_reason = note
        self.audit.record_reschedule(
            session.id,
            actor_id=actor_id,
            actor_role=role.value if role else AuditActorRole.SYSTEM.value,
            outcome=RescheduleStatus.CANCELLED.value,
            previous_scheduled_at=session.scheduled_at,
            new_scheduled_at=None,
            policy_snapshot=PolicyService.snapshot(
                self.policies.get_policies(), active.initiator_role, request_id=active.id
            ),
            details=note,
        )

    def dispatch_cancellation_effects(
        self, session: MentoringSession, role: ParticipantRole
    ) -> None:
        """Post-commit refund and counterpart notification."""
        self.side_effects.refund(
            session.id, session.refund_amount, session.refund_percentage or 0, session.currency
        )
        self.side_effects.notify(
            session.counterpart_of(role),
            "session_cancelled",
            {
                "session_id": session.id,
                "cancelled_by": role.value,
                "refund_percentage": session.refund_percentage,
            },
        )

    # Public operations

    @BaseService.measure_operation("cancel_session")
    def cancel(
        self,
        session_id: str,
        actor_id: str,
        reason_category: Optional[CancellationReasonCategory] = None,
        reason_details: Optional[str] = None,
    ) -> MentoringSession:
        """
        Cancel a scheduled session under the caller's role policy.

        Raises:
            PolicyViolation: inside the role's cancellation cutoff
            InvalidTransition: session is not scheduled
            ValidationException: a reason is required but missing
        """
        with self.transaction():
            session, role = self.get_for_participant(session_id, actor_id)
            if not session.is_scheduled:
                raise self._invalid_transition(session, "cancel")

            policies = self.policies.get_policies()
            if policies.refunds.require_cancellation_reason and reason_category is None:
                raise ValidationException(
                    "A cancellation reason is required",
                    code="CANCELLATION_REASON_REQUIRED",
                )

            now = self.now()
            role_policy = PolicyService.role_policy(policies, role)
            check_cutoff(
                "cancel", role, role_policy.cancellation_cutoff_hours, session.scheduled_at, now
            )

            decision = compute_refund(
                role,
                session.rate,
                session.scheduled_at,
                now,
                PolicyService.cancellation_policy_for(policies, role),
            )
            self._finalize_cancellation(
                session,
                actor_id=actor_id,
                role=role,
                now=now,
                decision=decision,
                reason_category=reason_category.value if reason_category else None,
                reason_details=reason_details,
                policies=policies,
            )
            self._close_active_request(session, role, actor_id, now, "Session cancelled")

        self.log_operation(
            "cancel_session",
            session_id=session.id,
            role=role.value,
            refund_percentage=decision.percentage,
            refund_tier=decision.tier,
        )
        self.dispatch_cancellation_effects(session, role)
        return session

    @BaseService.measure_operation("mark_no_show")
    def mark_no_show(self, session_id: str, actor_id: str) -> MentoringSession:
        with self.transaction():
            session, role = self.get_for_participant(session_id, actor_id)
            if role != ParticipantRole.MENTOR:
                raise PolicyViolation(
                    "Only the mentor can mark a session as no-show",
                    details={"role": role.value},
                )
            if not session.is_scheduled:
                raise self._invalid_transition(session, "mark no-show for")

            now = self.now()
            if now <= session.scheduled_at:
                raise PolicyViolation(
                    "A no-show can only be marked after the session start time",
                    details={"scheduled_at": session.scheduled_at.isoformat()},
                )
            window_hours = self.policies.get_policies().lifecycle.no_show_window_hours
            if now > session.scheduled_at + timedelta(hours=window_hours):
                raise PolicyViolation(
                    f"A no-show must be marked within {window_hours:g} hours of the start time",
                    cutoff_hours=window_hours,
                    details={"scheduled_at": session.scheduled_at.isoformat()},
                )

            session.mark_no_show(actor_id, now)
            self._close_active_request(session, role, actor_id, now, "Session marked as no-show")
            self.db.flush()

        self.log_operation("mark_no_show", session_id=session.id, mentor_id=actor_id)
        self.side_effects.notify(
            session.mentee_id, "session_no_show", {"session_id": session.id}
        )
        return session

    @BaseService.measure_operation("start_session")
    def start_session(self, session_id: str, actor_id: str) -> MentoringSession:
        """Move to in_progress at or after the scheduled instant; idempotent."""
        with self.transaction():
            session, role = self.get_for_participant(session_id, actor_id)
            if session.status == SessionStatus.IN_PROGRESS:
                return session
            if not session.is_scheduled:
                raise self._invalid_transition(session, "start")

            now = self.now()
            if now < session.scheduled_at:
                raise PolicyViolation(
                    "A session cannot start before its scheduled time",
                    details={"scheduled_at": session.scheduled_at.isoformat()},
                )

            session.status = SessionStatus.IN_PROGRESS.value
            session.started_at = now
            self._close_active_request(session, role, actor_id, now, "Session started")
            self.db.flush()

        self.log_operation("start_session", session_id=session.id, started_by=role.value)
        self.side_effects.provision_room(session.id)
        return session

    @BaseService.measure_operation("complete_session")
    def complete_session(self, session_id: str, actor_id: str) -> MentoringSession:
        with self.transaction():
            session, role = self.get_for_participant(session_id, actor_id)
            if session.status != SessionStatus.IN_PROGRESS:
                raise self._invalid_transition(session, "complete")

            session.status = SessionStatus.COMPLETED.value
            session.ended_at = self.now()
            self.db.flush()

        self.log_operation("complete_session", session_id=session.id, completed_by=role.value)
        self.side_effects.notify(
            session.counterpart_of(role), "session_completed", {"session_id": session.id}
        )
        return session

    def list_audit_entries(self, session_id: str, actor_id: str):
        self.get_for_participant(session_id, actor_id)
        return self.audit.list_for_session(session_id)


