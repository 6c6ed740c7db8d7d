# facility_booking/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingLedger and BookingStateMachine.

Endpoints:
    POST / - Create a pending booking
    GET / - List bookings with filters and pagination
    GET /code/{booking_code} - Look up a booking by its code
    GET /{booking_id} - Booking details
    POST /{booking_id}/cancel - Cancel a booking
    POST /{booking_id}/complete - Mark booking as completed (admin)
"""

import asyncio
from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import ValidationError

from ...api.dependencies import (
    get_booking_ledger,
    get_booking_state_machine,
    get_current_actor,
    require_admin,
)
from ...core.exceptions import ForbiddenException, ValidationException
from ...models.booking import Booking, BookingStatus
from ...principal import Actor
from ...schemas.base_responses import ErrorResponse, PaginatedResponse
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingFilter,
    BookingResponse,
    BookingSortField,
    SortOrder,
)
from ...services.booking_ledger import BookingLedger
from ...services.booking_state_machine import BookingStateMachine

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def _ensure_can_view(booking: Booking, actor: Actor) -> None:
    if not actor.is_privileged and booking.user_id != actor.id:
        raise ForbiddenException("You do not have access to this booking")


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Slot taken or no free booking code"},
        422: {"model": ErrorResponse, "description": "Booking policy violated"},
        503: {"model": ErrorResponse, "description": "Storage busy, retry later"},
    },
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    current_actor: Actor = Depends(get_current_actor),
    booking_ledger: BookingLedger = Depends(get_booking_ledger),
) -> BookingResponse:
    """Create a pending booking for the current user."""
    booking = await asyncio.to_thread(
        booking_ledger.create_booking,
        facility_id=booking_data.facility_id,
        user_id=current_actor.id,
        booking_date=booking_data.booking_date,
        start_time=booking_data.start_time,
        end_time=booking_data.end_time,
        special_request=booking_data.special_request,
    )
    return BookingResponse.model_validate(booking)


@router.get("", response_model=PaginatedResponse[BookingResponse])
async def list_bookings(
    facility_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, description="Admin only; customers always see their own"),
    booking_status: Optional[List[BookingStatus]] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    sort_by: BookingSortField = Query("created_at"),
    sort_order: SortOrder = Query("desc"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=50),
    current_actor: Actor = Depends(get_current_actor),
    booking_ledger: BookingLedger = Depends(get_booking_ledger),
) -> PaginatedResponse[BookingResponse]:
    """List bookings. Customers only ever see their own bookings."""
    try:
        booking_filter = BookingFilter(
            user_id=user_id if current_actor.is_privileged else current_actor.id,
            facility_id=facility_id,
            statuses=booking_status,
            date_from=date_from,
            date_to=date_to,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            per_page=per_page,
        )
    except ValidationError as exc:
        raise ValidationException(
            "Invalid booking filter",
            details={"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]},
        )

    items, total = await asyncio.to_thread(booking_ledger.list_bookings, booking_filter)
    return PaginatedResponse[BookingResponse](
        items=[BookingResponse.model_validate(b) for b in items],
        total=total,
        page=page,
        per_page=per_page,
        has_next=page * per_page < total,
        has_prev=page > 1,
    )


# ============================================================================
# SECTION 2: Routes with path parameters
# ============================================================================


@router.get("/code/{booking_code}", response_model=BookingResponse)
async def get_booking_by_code(
    booking_code: str,
    current_actor: Actor = Depends(get_current_actor),
    booking_ledger: BookingLedger = Depends(get_booking_ledger),
) -> BookingResponse:
    booking = await asyncio.to_thread(booking_ledger.get_booking_by_code, booking_code)
    _ensure_can_view(booking, current_actor)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_actor: Actor = Depends(get_current_actor),
    booking_ledger: BookingLedger = Depends(get_booking_ledger),
) -> BookingResponse:
    booking = await asyncio.to_thread(booking_ledger.get_booking, booking_id)
    _ensure_can_view(booking, current_actor)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    cancel_data: Optional[BookingCancel] = Body(None),
    current_actor: Actor = Depends(get_current_actor),
    state_machine: BookingStateMachine = Depends(get_booking_state_machine),
) -> BookingResponse:
    """Cancel a booking; completed payments are refunded in full."""
    booking = await asyncio.to_thread(
        state_machine.cancel,
        booking_id,
        current_actor,
        cancel_data.reason if cancel_data else None,
    )
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str,
    current_actor: Actor = Depends(require_admin),
    state_machine: BookingStateMachine = Depends(get_booking_state_machine),
) -> BookingResponse:
    """Mark a confirmed booking that has ended as completed."""
    booking = await asyncio.to_thread(state_machine.complete, booking_id, current_actor)
    return BookingResponse.model_validate(booking)
