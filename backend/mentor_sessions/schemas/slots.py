"""Slot listing schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List

from ._strict_base import StrictModel


class SlotResponse(StrictModel):
    start: datetime
    end: datetime
    display_start: datetime
    display_end: datetime
    capacity: int
    remaining: int
    requires_confirmation: bool
    price_multiplier: Decimal


class SlotListResponse(StrictModel):
    mentor_id: str
    timezone: str
    viewer_timezone: str
    start_date: date
    end_date: date
    slots: List[SlotResponse]
