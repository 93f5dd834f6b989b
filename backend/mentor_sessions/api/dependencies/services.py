# backend/mentor_sessions/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.timezone_utils import utc_now
from ...services.availability_service import AvailabilityService
from ...services.base import Clock
from ...services.booking_service import BookingService
from ...services.policy_service import PolicyService
from ...services.reschedule_service import RescheduleService
from ...services.session_lifecycle_service import SessionLifecycleService
from ...services.side_effects import SideEffectDispatcher, build_default_dispatcher
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_side_effect_dispatcher_singleton() -> SideEffectDispatcher:
    """One dispatcher (and its HTTP clients) per process."""
    return build_default_dispatcher()


def get_side_effects() -> SideEffectDispatcher:
    return get_side_effect_dispatcher_singleton()


def get_clock() -> Clock:
    """Wall clock; tests override this to pin "now"."""
    return utc_now


def get_availability_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AvailabilityService:
    return AvailabilityService(db, clock)


def get_policy_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> PolicyService:
    return PolicyService(db, clock)


def get_booking_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    side_effects: SideEffectDispatcher = Depends(get_side_effects),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        clock: Current-time provider
        side_effects: Post-commit payment and notification dispatcher

    Returns:
        BookingService instance
    """
    return BookingService(db, clock, side_effects=side_effects)


def get_session_lifecycle_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    side_effects: SideEffectDispatcher = Depends(get_side_effects),
) -> SessionLifecycleService:
    return SessionLifecycleService(db, clock, side_effects=side_effects)


def get_reschedule_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    side_effects: SideEffectDispatcher = Depends(get_side_effects),
) -> RescheduleService:
    return RescheduleService(db, clock, side_effects=side_effects)
