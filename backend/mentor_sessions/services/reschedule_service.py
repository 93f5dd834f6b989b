# backend/mentor_sessions/services/reschedule_service.py
"""
Reschedule Service

Negotiation over moving a session to a new time:

    pending ──accept──────────> accepted
       │  ──reject──────────> rejected
       │  ──cancel_session──> cancelled   (session cancelled, 100% refund)
       │  ──withdraw────────> cancelled   (session untouched)
       └──counter_propose──> counter_proposed ──(same responses)──> ...

accept, reject and counter_propose come from the party whose turn it is.
After max_counter_proposals rounds only accept and cancel_session remain.
Expiry is evaluated lazily whenever a request is touched. Accepting moves the
session through the same booking_version compare-and-swap that booking uses.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import AuditActorRole, ParticipantRole, RescheduleAction
from ..core.exceptions import (
    ForbiddenException,
    InvalidTransition,
    NotFound,
    PolicyViolation,
    RequestAlreadyActive,
    RequestExpired,
    RoundLimitExceeded,
    SlotTaken,
    ValidationException,
)
from ..core.config import settings
from ..core.timezone_utils import ensure_utc
from ..models.reschedule_request import RescheduleRequest, RescheduleStatus
from ..models.session import MentoringSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.reschedule_repository import RescheduleRequestRepository
from ..schemas.policy import SessionPolicySet
from .audit_service import AuditService
from .availability_service import AvailabilityService
from .base import BaseService, Clock
from .booking_service import BookingService, BookingVersionConflict
from .policy_service import PolicyService
from .session_lifecycle_service import SessionLifecycleService
from .side_effects import SideEffectDispatcher
from .slot_resolver import count_occupying, find_slot

logger = logging.getLogger(__name__)

WITHDRAWN_NOTE = "Withdrawn by initiator"
EXPIRED_NOTE = "Expired without a response"
CANCELLED_BY_MENTEE_NOTE = "Session cancelled in response to reschedule request"


class RescheduleService(BaseService):
    """Reschedule negotiation between mentor and mentee."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        side_effects: Optional[SideEffectDispatcher] = None,
        lifecycle_service: Optional[SessionLifecycleService] = None,
        availability_service: Optional[AvailabilityService] = None,
        policy_service: Optional[PolicyService] = None,
        audit_service: Optional[AuditService] = None,
        max_attempts: Optional[int] = None,
    ):
        super().__init__(db, clock)
        self.repo = RescheduleRequestRepository(db)
        self.max_attempts = max_attempts or settings.booking_max_attempts
        self.side_effects = side_effects or SideEffectDispatcher()
        self.policies = policy_service or PolicyService(db, self.clock)
        self.audit = audit_service or AuditService(db, self.clock)
        self.lifecycle = lifecycle_service or SessionLifecycleService(
            db,
            self.clock,
            side_effects=self.side_effects,
            audit_service=self.audit,
            policy_service=self.policies,
        )
        self.availability = availability_service or AvailabilityService(db, self.clock)

    # Helpers

    def _load_for_actor(
        self, request_id: str, actor_id: str
    ) -> Tuple[RescheduleRequest, MentoringSession, ParticipantRole]:
        request = self.repo.get_by_id(request_id)
        if request is None:
            raise NotFound("Reschedule request", request_id)
        session = request.session
        role = session.role_of(actor_id)
        if role is None:
            raise ForbiddenException(
                "You are not a participant in this session",
                code="NOT_A_PARTICIPANT",
                details={"request_id": request_id},
            )
        return request, session, role

    def _expire_if_due(
        self,
        request: RescheduleRequest,
        session: MentoringSession,
        now: datetime,
        policies: SessionPolicySet,
    ) -> bool:
        """Persist the expired status (and its audit entry) when the deadline passed."""
        if not request.is_expired_at(now):
            return False

        request.resolve(RescheduleStatus.EXPIRED, None, None, now, note=EXPIRED_NOTE)
        self.audit.record_reschedule(
            session.id,
            actor_id=None,
            actor_role=AuditActorRole.SYSTEM.value,
            outcome=RescheduleStatus.EXPIRED.value,
            previous_scheduled_at=session.scheduled_at,
            new_scheduled_at=None,
            policy_snapshot=PolicyService.snapshot(
                policies, request.initiator_role, request_id=request.id
            ),
        )
        self.db.flush()
        prometheus_metrics.inc_reschedule_outcome(RescheduleStatus.EXPIRED.value)
        self.logger.info("Reschedule request %s expired", request.id)
        return True

    def _check_capacity(
        self,
        session: MentoringSession,
        instant: datetime,
        duration_minutes: int,
        now: datetime,
    ) -> None:
        """SlotTaken when the instant is at capacity, ignoring this session."""
        schedule = self.availability.get_schedule(session.mentor_id)
        snapshot = AvailabilityService.build_snapshot(schedule)
        slot = find_slot(snapshot, [], instant, now, apply_window=False)
        capacity = slot.capacity if slot is not None else 1
        busy = self.availability.busy_around(
            session.mentor_id, instant, exclude_session_id=session.id
        )
        if count_occupying(busy, instant, duration_minutes, snapshot.buffer_minutes) >= capacity:
            raise SlotTaken(instant)

    def _validate_proposal(
        self,
        session: MentoringSession,
        proposed_time: datetime,
        now: datetime,
        duration_minutes: Optional[int] = None,
    ) -> datetime:
        proposed_time = ensure_utc(proposed_time)
        if proposed_time <= now:
            raise PolicyViolation(
                "The proposed time must be in the future",
                details={"proposed_time": proposed_time.isoformat()},
            )
        if proposed_time == session.scheduled_at:
            raise PolicyViolation(
                "The proposed time is the session's current time",
                details={"proposed_time": proposed_time.isoformat()},
            )

        schedule = self.availability.get_schedule(session.mentor_id)
        if duration_minutes is not None and not (
            0 < duration_minutes <= schedule.default_session_duration
        ):
            raise ValidationException(
                f"Duration must be between 1 and {schedule.default_session_duration} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )
        BookingService.validate_slot(
            AvailabilityService.build_snapshot(schedule), proposed_time, now
        )
        self._check_capacity(
            session, proposed_time, duration_minutes or session.duration_minutes, now
        )
        return proposed_time

    def _finish(
        self,
        request: RescheduleRequest,
        session: MentoringSession,
        role: ParticipantRole,
        outcome: str,
    ) -> None:
        prometheus_metrics.inc_reschedule_outcome(outcome)
        self.log_operation(
            f"reschedule_{outcome}",
            request_id=request.id,
            session_id=session.id,
            role=role.value,
        )
        self.side_effects.notify(
            session.counterpart_of(role),
            f"reschedule_{outcome}",
            {
                "request_id": request.id,
                "session_id": session.id,
                "scheduled_at": session.scheduled_at.isoformat(),
                "proposed_time": request.proposed_time.isoformat(),
            },
        )

    # Operations

    @BaseService.measure_operation("initiate_reschedule")
    def initiate(
        self,
        session_id: str,
        actor_id: str,
        proposed_time: datetime,
        proposed_duration: Optional[int] = None,
    ) -> RescheduleRequest:
        """
        Open a reschedule request on a scheduled session.

        Raises:
            PolicyViolation: cutoff, reschedule allowance or proposal not a slot
            SlotTaken: proposed slot is occupied
            RequestAlreadyActive: the session already has an open request
        """
        with self.transaction():
            session, role = self.lifecycle.get_for_participant(session_id, actor_id)
            now = self.now()
            policies = self.policies.get_policies()
            self.lifecycle.check_reschedule_allowed(session, role, now, policies)

            existing = self.repo.get_active_for_session(session.id)
            if existing is not None and not self._expire_if_due(existing, session, now, policies):
                raise RequestAlreadyActive(session.id, existing.id)

            proposed = self._validate_proposal(session, proposed_time, now, proposed_duration)
            request = self.repo.create_active(
                session_id=session.id,
                initiated_by=role.value,
                initiator_id=actor_id,
                status=RescheduleStatus.PENDING.value,
                original_time=session.scheduled_at,
                proposed_time=proposed,
                proposed_duration=proposed_duration,
                counter_proposal_count=0,
                expires_at=now
                + timedelta(hours=policies.negotiation.reschedule_request_expiry_hours),
                created_at=now,
            )

        self._finish(request, session, role, RescheduleStatus.PENDING.value)
        return request

    @BaseService.measure_operation("respond_reschedule")
    def respond(
        self,
        request_id: str,
        actor_id: str,
        action: RescheduleAction,
        counter_proposed_time: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> RescheduleRequest:
        """
        Answer the proposal on the table.

        Raises:
            RequestExpired: the deadline passed (the expiry is persisted first)
            InvalidTransition: request is terminal, or it is not the caller's turn
            RoundLimitExceeded: counter-proposal cap reached
            PolicyViolation: cancel_session by the wrong party
            SlotTaken: the proposed slot became occupied
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                request, session, role, outcome = self._respond_once(
                    request_id, actor_id, action, counter_proposed_time, note
                )
                break
            except BookingVersionConflict:
                self.logger.info(
                    "Booking version conflict accepting reschedule %s (attempt %d/%d)",
                    request_id,
                    attempt,
                    self.max_attempts,
                )
        else:
            request = self.repo.get_by_id(request_id)
            raise SlotTaken(
                request.proposed_time,
                "The proposed slot could not be secured because of concurrent bookings",
            )

        if outcome is None:
            raise RequestExpired(request.id, request.expires_at)

        if action == RescheduleAction.CANCEL_SESSION:
            self.lifecycle.dispatch_cancellation_effects(session, role)
        self._finish(request, session, role, outcome)
        return request

    def _respond_once(
        self,
        request_id: str,
        actor_id: str,
        action: RescheduleAction,
        counter_proposed_time: Optional[datetime],
        note: Optional[str],
    ) -> Tuple[RescheduleRequest, MentoringSession, ParticipantRole, Optional[str]]:
        """One transactional attempt; outcome is None when the request expired."""
        with self.transaction():
            request, session, role = self._load_for_actor(request_id, actor_id)
            now = self.now()
            policies = self.policies.get_policies()

            if self._expire_if_due(request, session, now, policies):
                return request, session, role, None

            if not request.is_active:
                raise InvalidTransition("reschedule request", request.status, action.value)

            if action == RescheduleAction.CANCEL_SESSION:
                outcome = self._cancel_session(
                    request, session, role, actor_id, now, policies, note
                )
            else:
                if role != request.responder:
                    raise InvalidTransition(
                        "reschedule request",
                        request.status,
                        action.value,
                        "Waiting for the other party to respond",
                    )
                if action == RescheduleAction.ACCEPT:
                    outcome = self._accept(request, session, role, actor_id, now, policies, note)
                elif action == RescheduleAction.REJECT:
                    outcome = self._reject(request, session, role, actor_id, now, policies, note)
                else:
                    outcome = self._counter_propose(
                        request, session, role, now, policies, counter_proposed_time
                    )
        return request, session, role, outcome

    def _accept(
        self,
        request: RescheduleRequest,
        session: MentoringSession,
        role: ParticipantRole,
        actor_id: str,
        now: datetime,
        policies: SessionPolicySet,
        note: Optional[str],
    ) -> str:
        new_time = request.proposed_time
        duration = request.proposed_duration or session.duration_minutes
        schedule = self.availability.get_schedule(session.mentor_id)
        expected_version = schedule.booking_version
        self._check_capacity(session, new_time, duration, now)
        if not self.availability.repo.bump_booking_version(schedule.id, expected_version):
            raise BookingVersionConflict()

        previous = session.scheduled_at
        self.lifecycle.apply_reschedule(
            session, new_time, request.initiator_role, request.proposed_duration
        )
        request.resolve(RescheduleStatus.ACCEPTED, role, actor_id, now, note=note)
        self.audit.record_reschedule(
            session.id,
            actor_id=actor_id,
            actor_role=role.value,
            outcome=RescheduleStatus.ACCEPTED.value,
            previous_scheduled_at=previous,
            new_scheduled_at=new_time,
            policy_snapshot=PolicyService.snapshot(
                policies,
                request.initiator_role,
                request_id=request.id,
                counter_proposal_count=request.counter_proposal_count,
            ),
            details=note,
        )
        self.db.flush()
        return RescheduleStatus.ACCEPTED.value

    def _reject(
        self,
        request: RescheduleRequest,
        session: MentoringSession,
        role: ParticipantRole,
        actor_id: str,
        now: datetime,
        policies: SessionPolicySet,
        note: Optional[str],
    ) -> str:
        max_rounds = policies.negotiation.max_counter_proposals
        if request.counter_proposal_count >= max_rounds:
            raise InvalidTransition(
                "reschedule request",
                request.status,
                RescheduleAction.REJECT.value,
                f"Maximum of {max_rounds} counter-proposals reached. "
                "Please accept the proposed time or cancel the session.",
            )

        request.resolve(RescheduleStatus.REJECTED, role, actor_id, now, note=note)
        self.audit.record_reschedule(
            session.id,
            actor_id=actor_id,
            actor_role=role.value,
            outcome=RescheduleStatus.REJECTED.value,
            previous_scheduled_at=session.scheduled_at,
            new_scheduled_at=None,
            policy_snapshot=PolicyService.snapshot(
                policies,
                request.initiator_role,
                request_id=request.id,
                rejected_time=request.proposed_time.isoformat(),
            ),
            details=note,
        )
        self.db.flush()
        return RescheduleStatus.REJECTED.value

    def _counter_propose(
        self,
        request: RescheduleRequest,
        session: MentoringSession,
        role: ParticipantRole,
        now: datetime,
        policies: SessionPolicySet,
        counter_proposed_time: Optional[datetime],
    ) -> str:
        max_rounds = policies.negotiation.max_counter_proposals
        if request.counter_proposal_count >= max_rounds:
            raise RoundLimitExceeded(request.id, max_rounds)
        if counter_proposed_time is None:
            raise PolicyViolation(
                "A counter-proposal needs a proposed time", details={"request_id": request.id}
            )

        proposed = self._validate_proposal(
            session, counter_proposed_time, now, request.proposed_duration
        )
        request.status = RescheduleStatus.COUNTER_PROPOSED.value
        request.proposed_time = proposed
        request.counter_proposed_time = proposed
        request.counter_proposed_by = role.value
        request.counter_proposal_count = (request.counter_proposal_count or 0) + 1
        request.expires_at = now + timedelta(
            hours=policies.negotiation.reschedule_request_expiry_hours
        )
        self.db.flush()
        return RescheduleStatus.COUNTER_PROPOSED.value

    def _cancel_session(
        self,
        request: RescheduleRequest,
        session: MentoringSession,
        role: ParticipantRole,
        actor_id: str,
        now: datetime,
        policies: SessionPolicySet,
        note: Optional[str],
    ) -> str:
        if role != ParticipantRole.MENTEE or request.initiator_role != ParticipantRole.MENTOR:
            raise PolicyViolation(
                "Only the mentee can cancel the session in answer to a mentor's reschedule request",
                details={"role": role.value, "initiated_by": request.initiated_by},
            )

        self.lifecycle.cancel_for_reschedule(
            session, actor_id, role, now, policies, reason_details=note
        )
        request.resolve(RescheduleStatus.CANCELLED, role, actor_id, now, note=note)
        request.cancellation_reason = note or CANCELLED_BY_MENTEE_NOTE
        self.db.flush()
        return "session_cancelled"

    @BaseService.measure_operation("withdraw_reschedule")
    def withdraw(self, request_id: str, actor_id: str) -> RescheduleRequest:
        expired = False
        with self.transaction():
            request, session, role = self._load_for_actor(request_id, actor_id)
            now = self.now()
            policies = self.policies.get_policies()

            if self._expire_if_due(request, session, now, policies):
                expired = True
            else:
                if actor_id != request.initiator_id:
                    raise PolicyViolation(
                        "Only the initiator can withdraw a reschedule request",
                        details={"request_id": request.id},
                    )
                if not request.is_active:
                    raise InvalidTransition("reschedule request", request.status, "withdraw")

                request.resolve(
                    RescheduleStatus.CANCELLED, role, actor_id, now, note=WITHDRAWN_NOTE
                )
                request.cancellation_reason = WITHDRAWN_NOTE
                self.audit.record_reschedule(
                    session.id,
                    actor_id=actor_id,
                    actor_role=role.value,
                    outcome="withdrawn",
                    previous_scheduled_at=session.scheduled_at,
                    new_scheduled_at=None,
                    policy_snapshot=PolicyService.snapshot(policies, role, request_id=request.id),
                )
                self.db.flush()

        if expired:
            raise RequestExpired(request.id, request.expires_at)

        self._finish(request, session, role, "withdrawn")
        return request

    # Reads; an overdue request is persisted as expired and returned as such

    def get_request(self, request_id: str, actor_id: str) -> RescheduleRequest:
        with self.transaction():
            request, session, _ = self._load_for_actor(request_id, actor_id)
            if request.is_active:
                self._expire_if_due(request, session, self.now(), self.policies.get_policies())
        return request

    def get_active_request(self, session_id: str, actor_id: str) -> Optional[RescheduleRequest]:
        with self.transaction():
            session, _ = self.lifecycle.get_for_participant(session_id, actor_id)
            request = self.repo.get_active_for_session(session.id)
            if request is not None and self._expire_if_due(
                request, session, self.now(), self.policies.get_policies()
            ):
                request = None
        return request

    def list_requests(self, session_id: str, actor_id: str) -> List[RescheduleRequest]:
        with self.transaction():
            session, _ = self.lifecycle.get_for_participant(session_id, actor_id)
            requests = self.repo.list_for_session(session.id)
            now = self.now()
            overdue = [r for r in requests if r.is_expired_at(now)]
            if overdue:
                policies = self.policies.get_policies()
                for request in overdue:
                    self._expire_if_due(request, session, now, policies)
        return requests
