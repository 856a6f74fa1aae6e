# backend/borkin/routes/v1/payments.py
"""
Payment API Routes - API v1

Versioned payment endpoints under /api/v1/payments.

Endpoints:
    POST /intents                        → Authorize a charge for a contractor
    POST /intents/update                 → Change the amount of an intent
    POST /intents/cancel                 → Cancel an intent (idempotent)
    GET /intents/{intent_id}             → Inspect an intent
    POST /connect/onboard                → Contractor payout onboarding link
    POST /methods                        → List a customer's saved cards
    POST /payouts                        → List transfers to a payout account
    POST /client-history                 → Client payments and paid bookings
    POST /portal-session                 → Billing portal link for a client
    POST /fees/quote                     → Client-facing total for a base price
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies.services import (
    get_fee_schedule,
    get_payment_account_service,
    get_payment_history_service,
    get_payment_intent_service,
)
from ...core.exceptions import DomainException
from ...schemas.payment_schemas import (
    CancelPaymentIntentRequest,
    CancelPaymentIntentResponse,
    ClientHistoryRequest,
    ClientHistoryResponse,
    ClientPaymentResponse,
    ConnectOnboardRequest,
    CreatePaymentIntentRequest,
    FeeBreakdownResponse,
    FeeQuoteRequest,
    FeeQuoteResponse,
    ListPaymentMethodsRequest,
    ListPayoutsRequest,
    OnboardingLinkResponse,
    PaidBookingResponse,
    PaymentIntentDetailResponse,
    PaymentIntentResponse,
    PaymentMethodsResponse,
    PayoutResponse,
    PayoutsResponse,
    PortalSessionRequest,
    PortalSessionResponse,
    SavedCardResponse,
    UpdatePaymentIntentRequest,
)
from ...services.fee_calculator import FeeSchedule, quote_fees, to_cents
from ...services.payment_account_service import PaymentAccountService
from ...services.payment_history_service import PaymentHistoryService
from ...services.payment_intent_service import PaymentIntentResult, PaymentIntentService
from ._errors import handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["payments-v1"])


def _intent_response(result: PaymentIntentResult) -> PaymentIntentResponse:
    return PaymentIntentResponse(
        payment_intent_id=result.intent_id,
        client_secret=result.client_secret,
        status=result.status,
        replaced=result.replaced,
        fees=FeeBreakdownResponse.from_breakdown(result.fees),
    )


# ========== Payment intents ==========


@router.post("/intents", response_model=PaymentIntentResponse)
async def create_payment_intent(
    payload: CreatePaymentIntentRequest,
    intent_service: PaymentIntentService = Depends(get_payment_intent_service),
) -> PaymentIntentResponse:
    """
    Authorize a manual-capture charge.

    The contractor's share is transferred to their payout account when the
    intent is captured.
    """
    try:
        result = await asyncio.to_thread(
            intent_service.create_payment_intent,
            payload.amount_cents,
            payload.currency,
            payload.customer_id,
            payload.contractor_id,
            payload.base_service_amount_cents,
            payload.payment_method_id,
            payload.booking_id,
        )
        return _intent_response(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/intents/update", response_model=PaymentIntentResponse)
async def update_payment_intent(
    payload: UpdatePaymentIntentRequest,
    intent_service: PaymentIntentService = Depends(get_payment_intent_service),
) -> PaymentIntentResponse:
    """Change an intent's amount; ``replaced`` reports whether a new intent was opened."""
    try:
        result = await asyncio.to_thread(
            intent_service.update_payment_intent,
            payload.payment_intent_id,
            payload.new_amount_cents,
            payload.currency,
            payload.customer_id,
            payload.contractor_id,
            payload.base_service_amount_cents,
            payload.payment_method_id,
            payload.booking_id,
        )
        return _intent_response(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/intents/cancel", response_model=CancelPaymentIntentResponse)
async def cancel_payment_intent(
    payload: CancelPaymentIntentRequest,
    intent_service: PaymentIntentService = Depends(get_payment_intent_service),
) -> CancelPaymentIntentResponse:
    try:
        status_value = await asyncio.to_thread(
            intent_service.cancel_payment_intent, payload.payment_intent_id
        )
        return CancelPaymentIntentResponse(
            payment_intent_id=payload.payment_intent_id, status=status_value
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/intents/{intent_id}", response_model=PaymentIntentDetailResponse)
async def get_payment_intent(
    intent_id: str,
    intent_service: PaymentIntentService = Depends(get_payment_intent_service),
) -> PaymentIntentDetailResponse:
    try:
        record = await asyncio.to_thread(intent_service.retrieve_payment_intent, intent_id)
        return PaymentIntentDetailResponse.from_record(record)
    except DomainException as e:
        handle_domain_exception(e)


# ========== Contractor payouts ==========


@router.post("/connect/onboard", response_model=OnboardingLinkResponse)
async def start_onboarding(
    payload: ConnectOnboardRequest,
    account_service: PaymentAccountService = Depends(get_payment_account_service),
) -> OnboardingLinkResponse:
    """
    Onboarding link for the contractor's payout account.

    An account is created first when the contractor has none valid in the
    current environment.
    """
    try:
        url = await asyncio.to_thread(
            account_service.create_onboarding_link,
            payload.contractor_id,
            refresh_url=payload.refresh_url,
            return_url=payload.return_url,
        )
        return OnboardingLinkResponse(url=url)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/payouts", response_model=PayoutsResponse)
async def list_payouts(
    payload: ListPayoutsRequest,
    history_service: PaymentHistoryService = Depends(get_payment_history_service),
) -> PayoutsResponse:
    try:
        transfers = await asyncio.to_thread(
            history_service.list_contractor_payouts, payload.stripe_account_id, payload.limit
        )
        return PayoutsResponse(payouts=[PayoutResponse.from_record(t) for t in transfers])
    except DomainException as e:
        handle_domain_exception(e)


# ========== Client payments ==========


@router.post("/methods", response_model=PaymentMethodsResponse)
async def list_payment_methods(
    payload: ListPaymentMethodsRequest,
    history_service: PaymentHistoryService = Depends(get_payment_history_service),
) -> PaymentMethodsResponse:
    try:
        cards = await asyncio.to_thread(history_service.list_payment_methods, payload.customer_id)
        return PaymentMethodsResponse(
            payment_methods=[SavedCardResponse.from_card(card) for card in cards]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/client-history", response_model=ClientHistoryResponse)
async def list_client_payments(
    payload: ClientHistoryRequest,
    history_service: PaymentHistoryService = Depends(get_payment_history_service),
) -> ClientHistoryResponse:
    try:
        history = await asyncio.to_thread(
            history_service.list_client_payments, payload.customer_id, payload.client_id
        )
        return ClientHistoryResponse(
            payments=[ClientPaymentResponse.from_record(pi) for pi in history.payments],
            completed_bookings=[
                PaidBookingResponse.model_validate(b) for b in history.completed_bookings
            ],
            total_spent=float(history.total_spent),
            total_bookings=history.total_bookings,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/portal-session", response_model=PortalSessionResponse)
async def create_portal_session(
    payload: PortalSessionRequest,
    history_service: PaymentHistoryService = Depends(get_payment_history_service),
) -> PortalSessionResponse:
    try:
        url = await asyncio.to_thread(
            history_service.create_portal_session, payload.client_id, payload.return_url
        )
        return PortalSessionResponse(url=url)
    except DomainException as e:
        handle_domain_exception(e)


# ========== Fees ==========


@router.post("/fees/quote", response_model=FeeQuoteResponse)
async def get_fee_quote(
    payload: FeeQuoteRequest,
    fee_schedule: FeeSchedule = Depends(get_fee_schedule),
) -> FeeQuoteResponse:
    """Platform and processor fees on top of a contractor's base price."""
    try:
        quote = quote_fees(to_cents(payload.base_service_amount), fee_schedule)
        return FeeQuoteResponse.from_quote(quote)
    except DomainException as e:
        handle_domain_exception(e)
