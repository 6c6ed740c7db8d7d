# facility_booking/routes/v1/payments.py
"""
Payment signal and refund routes - API v1

Endpoints:
    POST /bookings/{booking_id}/verified - Payment collaborator reports success
    POST /bookings/{booking_id}/failed - Payment collaborator reports failure
    POST /{payment_id}/refund - Admin refund of a completed payment
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends

from ...api.dependencies import (
    get_payment_event_handler,
    get_refund_service,
    require_admin,
    require_privileged,
)
from ...principal import Actor
from ...schemas.booking import BookingResponse
from ...schemas.payment import PaymentResponse, PaymentSignal, RefundRequest
from ...services.payment_events import PaymentEventHandler
from ...services.refund_service import RefundService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["payments-v1"])


@router.post("/bookings/{booking_id}/verified", response_model=BookingResponse)
async def payment_verified(
    booking_id: str,
    signal: Optional[PaymentSignal] = Body(None),
    _: Actor = Depends(require_privileged),
    handler: PaymentEventHandler = Depends(get_payment_event_handler),
) -> BookingResponse:
    payment_id = signal.payment_id if signal else None
    booking = await asyncio.to_thread(handler.on_payment_verified, booking_id, payment_id)
    return BookingResponse.model_validate(booking)


@router.post("/bookings/{booking_id}/failed", response_model=BookingResponse)
async def payment_failed(
    booking_id: str,
    signal: Optional[PaymentSignal] = Body(None),
    _: Actor = Depends(require_privileged),
    handler: PaymentEventHandler = Depends(get_payment_event_handler),
) -> BookingResponse:
    payment_id = signal.payment_id if signal else None
    booking = await asyncio.to_thread(handler.on_payment_failed, booking_id, payment_id)
    return BookingResponse.model_validate(booking)


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: str,
    refund_data: Optional[RefundRequest] = Body(None),
    current_actor: Actor = Depends(require_admin),
    refund_service: RefundService = Depends(get_refund_service),
) -> PaymentResponse:
    payment = await asyncio.to_thread(
        refund_service.process_refund,
        payment_id,
        current_actor,
        refund_amount=refund_data.refund_amount if refund_data else None,
        reason=refund_data.reason if refund_data else None,
    )
    return PaymentResponse.model_validate(payment)
