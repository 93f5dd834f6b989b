# backend/mentor_sessions/routes/v1/reschedule.py
"""
Reschedule negotiation routes - API v1

Endpoints:
    POST /sessions/{session_id}/reschedule - Open a reschedule request
    GET /sessions/{session_id}/reschedule - All requests for a session
    GET /reschedule-requests/{request_id} - One request
    POST /reschedule-requests/{request_id}/respond - accept, reject,
        counter_propose or cancel_session
    POST /reschedule-requests/{request_id}/withdraw - Initiator withdraws
"""

import asyncio
import logging
from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ...api.dependencies import get_current_user_id, get_reschedule_service
from ...core.exceptions import DomainException
from ...schemas.reschedule import (
    RescheduleInitiate,
    RescheduleRequestResponse,
    RescheduleRespond,
)
from ...services.reschedule_service import RescheduleService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reschedule-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "/sessions/{session_id}/reschedule",
    response_model=RescheduleRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initiate_reschedule(
    payload: RescheduleInitiate,
    session_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: RescheduleService = Depends(get_reschedule_service),
) -> RescheduleRequestResponse:
    try:
        request = await asyncio.to_thread(
            service.initiate,
            session_id,
            current_user_id,
            payload.proposed_time,
            payload.proposed_duration,
        )
        return RescheduleRequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/sessions/{session_id}/reschedule",
    response_model=List[RescheduleRequestResponse],
)
async def list_reschedule_requests(
    session_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: RescheduleService = Depends(get_reschedule_service),
) -> List[RescheduleRequestResponse]:
    try:
        requests = await asyncio.to_thread(service.list_requests, session_id, current_user_id)
        return [RescheduleRequestResponse.model_validate(r) for r in requests]
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/reschedule-requests/{request_id}",
    response_model=RescheduleRequestResponse,
)
async def get_reschedule_request(
    request_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: RescheduleService = Depends(get_reschedule_service),
) -> RescheduleRequestResponse:
    try:
        request = await asyncio.to_thread(service.get_request, request_id, current_user_id)
        return RescheduleRequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/reschedule-requests/{request_id}/respond",
    response_model=RescheduleRequestResponse,
)
async def respond_to_reschedule(
    payload: RescheduleRespond,
    request_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: RescheduleService = Depends(get_reschedule_service),
) -> RescheduleRequestResponse:
    """
    Respond to the proposal on the table.

    An expired request answers 422 REQUEST_EXPIRED; the expiry itself is
    persisted before the error is returned.
    """
    try:
        request = await asyncio.to_thread(
            service.respond,
            request_id,
            current_user_id,
            payload.action,
            payload.counter_proposed_time,
            payload.note,
        )
        return RescheduleRequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/reschedule-requests/{request_id}/withdraw",
    response_model=RescheduleRequestResponse,
)
async def withdraw_reschedule(
    request_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: RescheduleService = Depends(get_reschedule_service),
) -> RescheduleRequestResponse:
    try:
        request = await asyncio.to_thread(service.withdraw, request_id, current_user_id)
        return RescheduleRequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)
