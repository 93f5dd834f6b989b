# backend/mentor_sessions/routes/v1/availability.py
"""
Mentor availability routes - API v1

Versioned availability endpoints under /api/v1/mentors.
All business logic delegated to AvailabilityService.

Endpoints:
    GET /{mentor_id}/availability - Schedule with patterns, exceptions and rules
    PUT /{mentor_id}/availability - Create or replace schedule settings
    PUT /{mentor_id}/availability/weekly/{day_of_week} - Replace one weekday
    POST /{mentor_id}/availability/exceptions - Add a dated exception
    DELETE /{mentor_id}/availability/exceptions/{exception_id} - Remove an exception
    POST /{mentor_id}/availability/rules - Add a rule
    PATCH /{mentor_id}/availability/rules/{rule_id} - Update a rule
    DELETE /{mentor_id}/availability/rules/{rule_id} - Remove a rule
    GET /{mentor_id}/slots - Bookable slots for a date range
"""

import asyncio
from datetime import date
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from ...api.dependencies import get_availability_service, get_current_user_id
from ...core.exceptions import DomainException, ForbiddenException
from ...schemas.availability import (
    ExceptionCreate,
    ExceptionResponse,
    RuleCreate,
    RuleResponse,
    RuleUpdate,
    ScheduleResponse,
    ScheduleUpsert,
    WeeklyPatternResponse,
    WeeklyPatternUpdate,
)
from ...schemas.slots import SlotListResponse, SlotResponse
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["availability-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _require_owner(mentor_id: str, current_user_id: str) -> None:
    if mentor_id != current_user_id:
        raise ForbiddenException(
            "Only the mentor can change their availability",
            code="NOT_SCHEDULE_OWNER",
            details={"mentor_id": mentor_id},
        )


@router.get("/{mentor_id}/availability", response_model=ScheduleResponse)
async def get_availability(
    mentor_id: str = Path(..., min_length=1, max_length=26),
    service: AvailabilityService = Depends(get_availability_service),
) -> ScheduleResponse:
    try:
        schedule = await asyncio.to_thread(service.get_schedule, mentor_id)
        return ScheduleResponse.model_validate(schedule)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{mentor_id}/availability", response_model=ScheduleResponse)
async def upsert_availability(
    payload: ScheduleUpsert,
    mentor_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> ScheduleResponse:
    """Create the schedule or replace its settings (and weekly patterns when given)."""
    try:
        _require_owner(mentor_id, current_user_id)
        schedule = await asyncio.to_thread(service.upsert_schedule, mentor_id, payload)
        return ScheduleResponse.model_validate(schedule)
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/{mentor_id}/availability/weekly/{day_of_week}",
    response_model=WeeklyPatternResponse,
)
async def set_weekly_pattern(
    payload: WeeklyPatternUpdate,
    mentor_id: str = Path(..., min_length=1, max_length=26),
    day_of_week: int = Path(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday"),
    current_user_id: str = Depends(get_current_user_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> WeeklyPatternResponse:
    try:
        _require_owner(mentor_id, current_user_id)
        pattern = await asyncio.to_thread(
            service.set_weekly_pattern, mentor_id, day_of_week, payload
        )
        return WeeklyPatternResponse.model_validate(pattern)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{mentor_id}/availability/exceptions",
    response_model=ExceptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_exception(
    payload: ExceptionCreate,
    mentor_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> ExceptionResponse:
    try:
        _require_owner(mentor_id, current_user_id)
        exception = await asyncio.to_thread(service.add_exception, mentor_id, payload)
        return ExceptionResponse.model_validate(exception)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{mentor_id}/availability/exceptions/{exception_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_exception(
    mentor_id: str = Path(..., min_length=1, max_length=26),
    exception_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    try:
        _require_owner(mentor_id, current_user_id)
        await asyncio.to_thread(service.remove_exception, mentor_id, exception_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{mentor_id}/availability/rules",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_rule(
    payload: RuleCreate,
    mentor_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> RuleResponse:
    try:
        _require_owner(mentor_id, current_user_id)
        rule = await asyncio.to_thread(service.add_rule, mentor_id, payload)
        return RuleResponse.model_validate(rule)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{mentor_id}/availability/rules/{rule_id}", response_model=RuleResponse)
async def update_rule(
    payload: RuleUpdate,
    mentor_id: str = Path(..., min_length=1, max_length=26),
    rule_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> RuleResponse:
    try:
        _require_owner(mentor_id, current_user_id)
        rule = await asyncio.to_thread(service.update_rule, mentor_id, rule_id, payload)
        return RuleResponse.model_validate(rule)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{mentor_id}/availability/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_rule(
    mentor_id: str = Path(..., min_length=1, max_length=26),
    rule_id: str = Path(..., min_length=1, max_length=26),
    current_user_id: str = Depends(get_current_user_id),
    service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    try:
        _require_owner(mentor_id, current_user_id)
        await asyncio.to_thread(service.remove_rule, mentor_id, rule_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{mentor_id}/slots", response_model=SlotListResponse)
async def list_slots(
    mentor_id: str = Path(..., min_length=1, max_length=26),
    start_date: date = Query(..., description="First local date (schedule timezone)"),
    end_date: date = Query(..., description="Last local date, inclusive"),
    timezone: Optional[str] = Query(default=None, description="Display timezone"),
    service: AvailabilityService = Depends(get_availability_service),
) -> SlotListResponse:
    """Bookable slots; start/end are UTC, display_* are in the requested timezone."""
    try:
        schedule = await asyncio.to_thread(service.get_schedule, mentor_id)
        slots = await asyncio.to_thread(
            service.list_slots, mentor_id, start_date, end_date, timezone
        )
        return SlotListResponse(
            mentor_id=mentor_id,
            timezone=schedule.timezone,
            viewer_timezone=timezone or schedule.timezone,
            start_date=start_date,
            end_date=end_date,
            slots=[
                SlotResponse(
                    start=slot.start,
                    end=slot.end,
                    display_start=slot.display_start,
                    display_end=slot.display_end,
                    capacity=slot.capacity,
                    remaining=slot.remaining,
                    requires_confirmation=slot.requires_confirmation,
                    price_multiplier=slot.price_multiplier,
                )
                for slot in slots
            ],
        )
    except DomainException as e:
        handle_domain_exception(e)
