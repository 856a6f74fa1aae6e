# backend/borkin/routes/v1/bookings.py
"""
Booking payment routes - API v1

Versioned endpoints under /api/v1/bookings covering a booking's payment from
authorization to payout release.

Endpoints:
    POST /{booking_id}/payment           → Open the booking's authorization
    POST /{booking_id}/reprice           → Change price and re-authorize
    POST /{booking_id}/complete          → Mark completion by client or contractor
    POST /{booking_id}/capture           → Release payment to the contractor
    POST /{booking_id}/cancel-payment    → Cancel booking and its authorization
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, Path

from ...api.dependencies.services import get_booking_payment_service
from ...core.exceptions import DomainException
from ...schemas.booking_schemas import (
    BookingPaymentStateResponse,
    CaptureResponse,
    MarkCompletedRequest,
    OpenBookingPaymentRequest,
    RepriceBookingRequest,
)
from ...schemas.payment_schemas import FeeBreakdownResponse, PaymentIntentResponse
from ...services.booking_payment_service import BookingPaymentService
from ...services.payment_intent_service import PaymentIntentResult
from ._errors import handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"

BookingIdPath = Path(
    ...,
    description="Booking ULID",
    pattern=ULID_PATH_PATTERN,
    examples=["01HF4G12ABCDEF3456789XYZAB"],
)


def _intent_response(result: PaymentIntentResult) -> PaymentIntentResponse:
    return PaymentIntentResponse(
        payment_intent_id=result.intent_id,
        client_secret=result.client_secret,
        status=result.status,
        replaced=result.replaced,
        fees=FeeBreakdownResponse.from_breakdown(result.fees),
    )


@router.post(
    "/{booking_id}/payment",
    response_model=PaymentIntentResponse,
    responses={404: {"description": "Booking not found"}, 409: {"description": "Already open"}},
)
async def open_booking_payment(
    booking_id: str = BookingIdPath,
    payload: OpenBookingPaymentRequest = Body(default_factory=OpenBookingPaymentRequest),
    booking_payment_service: BookingPaymentService = Depends(get_booking_payment_service),
) -> PaymentIntentResponse:
    try:
        result = await asyncio.to_thread(
            booking_payment_service.open_booking_payment,
            booking_id,
            customer_id=payload.customer_id,
            payment_method_id=payload.payment_method_id,
            currency=payload.currency,
        )
        return _intent_response(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/reprice",
    response_model=PaymentIntentResponse,
    responses={409: {"description": "Intent replaced by another request; retry"}},
)
async def reprice_booking(
    booking_id: str = BookingIdPath,
    payload: RepriceBookingRequest = Body(...),
    booking_payment_service: BookingPaymentService = Depends(get_booking_payment_service),
) -> PaymentIntentResponse:
    """
    Change the booking's price.

    Unauthorized intents are edited in place; an authorized one is canceled
    and replaced (``replaced=true``).
    """
    try:
        result = await asyncio.to_thread(
            booking_payment_service.reprice_booking,
            booking_id,
            payload.payment_amount,
            payload.base_service_amount,
            expected_payment_intent_id=payload.expected_payment_intent_id,
            customer_id=payload.customer_id,
            payment_method_id=payload.payment_method_id,
        )
        return _intent_response(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/complete", response_model=BookingPaymentStateResponse)
async def mark_booking_completed(
    booking_id: str = BookingIdPath,
    payload: MarkCompletedRequest = Body(...),
    booking_payment_service: BookingPaymentService = Depends(get_booking_payment_service),
) -> BookingPaymentStateResponse:
    try:
        booking = await asyncio.to_thread(
            booking_payment_service.mark_completed, booking_id, payload.party
        )
        return BookingPaymentStateResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/capture",
    response_model=CaptureResponse,
    responses={
        404: {"description": "Booking not found"},
        409: {"description": "Not ready for capture, already paid or already captured"},
    },
)
async def capture_booking_payment(
    booking_id: str = BookingIdPath,
    booking_payment_service: BookingPaymentService = Depends(get_booking_payment_service),
) -> CaptureResponse:
    """Release the payment once both parties have marked the booking completed."""
    try:
        result = await asyncio.to_thread(
            booking_payment_service.capture_booking_payment, booking_id
        )
        return CaptureResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel-payment", response_model=BookingPaymentStateResponse)
async def cancel_booking_payment(
    booking_id: str = BookingIdPath,
    booking_payment_service: BookingPaymentService = Depends(get_booking_payment_service),
) -> BookingPaymentStateResponse:
    try:
        booking = await asyncio.to_thread(
            booking_payment_service.cancel_booking_payment, booking_id
        )
        return BookingPaymentStateResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
