# facility_booking/routes/v1/facilities.py
"""
Facility availability routes - API v1

Endpoints:
    GET /{facility_id}/slots?date=YYYY-MM-DD - Slot grid for a date
"""

import asyncio
from datetime import date
import logging

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_availability_service
from ...schemas.availability import DaySlots
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["facilities-v1"])


@router.get("/{facility_id}/slots", response_model=DaySlots)
async def get_facility_slots(
    facility_id: str,
    on_date: date = Query(..., alias="date", description="Date to inspect (YYYY-MM-DD)"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> DaySlots:
    """Slots for the facility's operating window on a date, with availability flags."""
    return await asyncio.to_thread(availability_service.get_slots, facility_id, on_date)
