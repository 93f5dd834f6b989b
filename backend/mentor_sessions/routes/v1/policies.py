# backend/mentor_sessions/routes/v1/policies.py
"""
Session policy routes - API v1

Endpoints:
    GET /session-policies - Policies in force (stored values over defaults)
    PATCH /session-policies - Partial update, validated as a whole
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from ...api.dependencies import get_current_user_id, get_policy_service
from ...core.exceptions import DomainException
from ...schemas.policy import SessionPolicySet, SessionPolicyUpdate
from ...services.policy_service import PolicyService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session-policies-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=SessionPolicySet)
async def get_session_policies(
    service: PolicyService = Depends(get_policy_service),
) -> SessionPolicySet:
    try:
        return await asyncio.to_thread(service.get_policies)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("", response_model=SessionPolicySet)
async def update_session_policies(
    payload: SessionPolicyUpdate,
    current_user_id: str = Depends(get_current_user_id),
    service: PolicyService = Depends(get_policy_service),
) -> SessionPolicySet:
    try:
        policies = await asyncio.to_thread(service.update_policies, payload)
        logger.info("Session policies updated by %s", current_user_id)
        return policies
    except DomainException as e:
        handle_domain_exception(e)
