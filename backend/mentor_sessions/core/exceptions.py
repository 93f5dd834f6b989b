# backend/mentor_sessions/core/exceptions.py
"""
Domain-specific exceptions for the mentor session scheduling engine.

These exceptions carry business-focused messages and structured details
that the API layer converts into HTTP errors.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific scheduling exceptions


class NotFound(NotFoundException):
    """Raised when a session, request or schedule does not exist."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} {resource_id} not found"
        super().__init__(
            message=message,
            code="NOT_FOUND",
            details={"resource": resource, "id": resource_id},
        )


class PolicyViolation(BusinessRuleException):
    """Raised when a role- or time-based guard rejects an operation."""

    def __init__(
        self,
        message: str,
        *,
        cutoff_hours: Optional[float] = None,
        hours_until: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload: Dict[str, Any] = dict(details or {})
        if cutoff_hours is not None:
            payload["cutoff_hours"] = cutoff_hours
        if hours_until is not None:
            payload["hours_until"] = round(hours_until, 2)
        self.cutoff_hours = cutoff_hours
        self.hours_until = hours_until
        super().__init__(message=message, code="POLICY_VIOLATION", details=payload)


class SlotTaken(ConflictException):
    """Raised when the requested slot is no longer free."""

    def __init__(self, slot_start: datetime, message: Optional[str] = None):
        super().__init__(
            message=message or "This time slot is no longer available",
            code="SLOT_TAKEN",
            details={"slot_start": slot_start.isoformat()},
        )


class RequestAlreadyActive(ConflictException):
    """Raised when a session already has a pending or counter-proposed request."""

    def __init__(self, session_id: str, request_id: Optional[str] = None):
        super().__init__(
            message="This session already has an active reschedule request",
            code="REQUEST_ALREADY_ACTIVE",
            details={"session_id": session_id, "request_id": request_id},
        )


class RequestExpired(BusinessRuleException):
    """Raised when a reschedule request is acted on after its deadline."""

    def __init__(self, request_id: str, expired_at: datetime):
        super().__init__(
            message="This reschedule request has expired",
            code="REQUEST_EXPIRED",
            details={"request_id": request_id, "expired_at": expired_at.isoformat()},
        )


class RoundLimitExceeded(BusinessRuleException):
    """Raised when a negotiation already used all counter-proposals."""

    def __init__(self, request_id: str, max_rounds: int):
        super().__init__(
            message=(
                f"Maximum of {max_rounds} counter-proposals reached. "
                "Please accept the proposed time or cancel the session."
            ),
            code="ROUND_LIMIT_EXCEEDED",
            details={"request_id": request_id, "max_counter_proposals": max_rounds},
        )


class InvalidTransition(ConflictException):
    """Raised when a state change is not legal from the current state."""

    def __init__(self, entity: str, current: str, attempted: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Cannot {attempted} a {entity} that is {current}",
            code="INVALID_TRANSITION",
            details={"entity": entity, "current": current, "attempted": attempted},
        )


class AvailabilityOverlapException(ConflictException):
    """Raised when time blocks of the same day overlap."""

    def __init__(self, label: str, new_range: str, conflicting_range: str):
        super().__init__(
            message=f"Overlapping block on {label}: {new_range} conflicts with {conflicting_range}",
            code="AVAILABILITY_OVERLAP",
            details={
                "day": label,
                "new_block": new_range,
                "conflicting_block": conflicting_range,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as query failures
    or constraint violations.
    """
