# backend/mentor_sessions/routes/v1/sessions.py
"""
Session routes - API v1

Versioned session endpoints under /api/v1/sessions.
Booking is delegated to BookingService, every later state change to
SessionLifecycleService.

Endpoints:
    POST / - Book a slot (caller is the mentee)
    GET /{session_id} - Session details (participants only)
    POST /{session_id}/cancel - Cancel under the caller's role policy
    POST /{session_id}/start - Move to in_progress
    POST /{session_id}/complete - Move to completed
    POST /{session_id}/no-show - Mark the mentee as no-show (mentor only)
    GET /{session_id}/audit - Cancellation and reschedule audit trail
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, status

from ...api.dependencies import (
    get_booking_service,
    get_current_user_id,
    get_session_lifecycle_service,
)
from ...core.exceptions import DomainException
from ...schemas.session import (
    SessionAuditEntryResponse,
    SessionAuditListResponse,
    SessionBookRequest,
    SessionCancelRequest,
    SessionResponse,
)
from ...services.booking_service import BookingService
from ...services.session_lifecycle_service import SessionLifecycleService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["sessions-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def book_session(
    payload: SessionBookRequest,
    current_user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    """
    Book a slot for the calling mentee.

    The slot is validated against the mentor's availability and re-checked
    for occupancy at commit time; a concurrent booking of the last seat
    returns 409 SLOT_TAKEN.
    """
    try:
        session = await asyncio.to_thread(
            booking_service.book,
            mentor_id=payload.mentor_id,
            mentee_id=current_user_id,
            slot_start=payload.slot_start,
            rate=payload.rate,
            duration_minutes=payload.duration_minutes,
            currency=payload.currency,
            details=payload.meeting_details(),
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    try:
        session, _ = await asyncio.to_thread(
            service.get_for_participant, session_id, current_user_id
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: str = Path(..., min_length=1, max_length=26),
    payload: Optional[SessionCancelRequest] = Body(default=None),
    current_user_id: str = Depends(get_current_user_id),
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    payload = payload or SessionCancelRequest()
    try:
        session = await asyncio.to_thread(
            service.cancel,
            session_id,
            current_user_id,
            payload.reason_category,
            payload.reason_details,
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/start", response_model=SessionResponse)
async def start_session(
    session_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(service.start_session, session_id, current_user_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(service.complete_session, session_id, current_user_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/no-show", response_model=SessionResponse)
async def mark_no_show(
    session_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(service.mark_no_show, session_id, current_user_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{session_id}/audit", response_model=SessionAuditListResponse)
async def get_session_audit(
    session_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionAuditListResponse:
    try:
        entries = await asyncio.to_thread(
            service.list_audit_entries, session_id, current_user_id
        )
        return SessionAuditListResponse(
            session_id=session_id,
            entries=[SessionAuditEntryResponse.model_validate(entry) for entry in entries],
        )
    except DomainException as e:
        handle_domain_exception(e)
