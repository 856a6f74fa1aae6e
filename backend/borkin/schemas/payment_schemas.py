"""
Payment-related Pydantic schemas for the Borkin platform.

Processor-facing amounts are integer cents; amounts mirrored from booking
records are major units.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator

from ..integrations.payment_processor import IntentRecord, TransferRecord
from ..services.fee_calculator import FeeBreakdown, to_major_units
from ..services.payment_history_service import SavedCard
from ._strict_base import StrictModel, StrictRequestModel, money_to_float

# ========== Request Models ==========


class CreatePaymentIntentRequest(StrictRequestModel):
    """Request to authorize a charge for a contractor."""

    amount_cents: int = Field(..., ge=0, description="Amount charged to the client, in cents")
    currency: str = Field(default="usd", min_length=3, max_length=3)
    customer_id: str = Field(..., min_length=1, description="Stripe customer ID")
    contractor_id: str = Field(..., min_length=1, description="Contractor receiving the transfer")
    base_service_amount_cents: Optional[int] = Field(
        default=None,
        ge=0,
        description="Contractor's base price; fees are charged on top when present",
    )
    payment_method_id: Optional[str] = Field(
        default=None, description="Saved payment method to confirm off-session"
    )
    booking_id: Optional[str] = None


class UpdatePaymentIntentRequest(StrictRequestModel):
    payment_intent_id: str = Field(..., min_length=1)
    new_amount_cents: int = Field(..., ge=0)
    currency: str = Field(default="usd", min_length=3, max_length=3)
    customer_id: str = Field(..., min_length=1)
    contractor_id: str = Field(..., min_length=1)
    base_service_amount_cents: Optional[int] = Field(default=None, ge=0)
    payment_method_id: Optional[str] = None
    booking_id: Optional[str] = None


class CancelPaymentIntentRequest(StrictRequestModel):
    payment_intent_id: str = Field(..., min_length=1)


class ConnectOnboardRequest(StrictRequestModel):
    contractor_id: str = Field(..., min_length=1)
    refresh_url: Optional[str] = None
    return_url: Optional[str] = None


class ListPaymentMethodsRequest(StrictRequestModel):
    customer_id: str = Field(..., min_length=1)


class ListPayoutsRequest(StrictRequestModel):
    stripe_account_id: str = Field(..., min_length=1)
    limit: int = Field(default=20, ge=1, le=100)


class ClientHistoryRequest(StrictRequestModel):
    customer_id: str = Field(..., min_length=1)
    client_id: str = Field(..., min_length=1)


class PortalSessionRequest(StrictRequestModel):
    client_id: str = Field(..., min_length=1)
    return_url: Optional[str] = None


class FeeQuoteRequest(StrictRequestModel):
    base_service_amount: Decimal = Field(
        ..., ge=0, max_digits=10, decimal_places=2, description="Contractor price in dollars"
    )


# ========== Response Models ==========


class FeeBreakdownResponse(StrictModel):
    amount_cents: int
    base_service_amount_cents: Optional[int]
    platform_fee_cents: int
    processor_fee_cents: int
    transfer_amount_cents: int
    application_fee_cents: int

    @classmethod
    def from_breakdown(cls, fees: FeeBreakdown) -> "FeeBreakdownResponse":
        return cls(
            amount_cents=fees.amount_cents,
            base_service_amount_cents=fees.base_service_amount_cents,
            platform_fee_cents=fees.platform_fee_cents,
            processor_fee_cents=fees.processor_fee_cents,
            transfer_amount_cents=fees.transfer_amount_cents,
            application_fee_cents=fees.application_fee_cents,
        )


class PaymentIntentResponse(StrictModel):
    payment_intent_id: str = Field(..., description="Current payment intent for the booking")
    client_secret: Optional[str] = Field(default=None, description="Secret for client-side confirmation")
    status: str
    replaced: bool = Field(
        default=False, description="True when the previous intent was canceled and replaced"
    )
    fees: FeeBreakdownResponse


class CancelPaymentIntentResponse(StrictModel):
    payment_intent_id: str
    status: str


class PaymentIntentDetailResponse(StrictModel):
    id: str
    status: str
    amount_cents: int
    currency: str
    customer_id: Optional[str] = None
    transfer_destination: Optional[str] = None
    transfer_amount_cents: Optional[int] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: IntentRecord) -> "PaymentIntentDetailResponse":
        return cls(
            id=record.id,
            status=record.status,
            amount_cents=record.amount,
            currency=record.currency,
            customer_id=record.customer,
            transfer_destination=record.transfer_destination,
            transfer_amount_cents=record.transfer_amount,
            metadata=record.metadata,
        )


class OnboardingLinkResponse(StrictModel):
    url: str = Field(..., description="Stripe-hosted onboarding URL")


class SavedCardResponse(StrictModel):
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None
    is_default: bool = False

    @classmethod
    def from_card(cls, card: SavedCard) -> "SavedCardResponse":
        return cls(
            id=card.id,
            brand=card.brand,
            last4=card.last4,
            exp_month=card.exp_month,
            exp_year=card.exp_year,
            is_default=card.is_default,
        )


class PaymentMethodsResponse(StrictModel):
    payment_methods: List[SavedCardResponse]


class PayoutResponse(StrictModel):
    id: str
    amount_cents: int
    currency: str
    created: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_record(cls, record: TransferRecord) -> "PayoutResponse":
        return cls(
            id=record.id,
            amount_cents=record.amount,
            currency=record.currency,
            created=record.created,
            description=record.description,
        )


class PayoutsResponse(StrictModel):
    payouts: List[PayoutResponse]


class ClientPaymentResponse(StrictModel):
    id: str
    amount: float = Field(..., description="Amount in dollars")
    currency: str
    status: str
    created: Optional[int] = None
    description: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: IntentRecord) -> "ClientPaymentResponse":
        return cls(
            id=record.id,
            amount=float(to_major_units(record.amount)),
            currency=record.currency,
            status=record.status,
            created=record.created,
            description=record.description,
            metadata=record.metadata,
        )


class PaidBookingResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str
    contractor_id: str
    start_date: Optional[str] = None
    status: str
    payment_amount: Optional[float] = None
    platform_fee: Optional[float] = None
    stripe_fee: Optional[float] = None
    net_payout: Optional[float] = None

    @field_validator("start_date", mode="before")
    @classmethod
    def _coerce_date(cls, v: object) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("payment_amount", "platform_fee", "stripe_fee", "net_payout", mode="before")
    @classmethod
    def _coerce_money(cls, v: object) -> Optional[float]:
        return money_to_float(v)


class ClientHistoryResponse(StrictModel):
    payments: List[ClientPaymentResponse]
    completed_bookings: List[PaidBookingResponse]
    total_spent: float
    total_bookings: int


class PortalSessionResponse(StrictModel):
    url: str


class FeeQuoteResponse(StrictModel):
    """Client-facing price for a contractor's base amount (dollars)."""

    base_service_amount: float
    platform_fee: float
    processor_fee: float
    client_total: float
    transfer_amount: float

    @classmethod
    def from_quote(cls, quote: Dict[str, int]) -> "FeeQuoteResponse":
        return cls(
            base_service_amount=float(to_major_units(quote["base_service_amount_cents"])),
            platform_fee=float(to_major_units(quote["platform_fee_cents"])),
            processor_fee=float(to_major_units(quote["processor_fee_cents"])),
            client_total=float(to_major_units(quote["client_total_cents"])),
            transfer_amount=float(to_major_units(quote["transfer_amount_cents"])),
        )
