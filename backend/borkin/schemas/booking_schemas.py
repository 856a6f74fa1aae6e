"""Booking payment request and response models."""

from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from ..core.enums import CompletionParty
from ..services.booking_payment_service import CaptureResult
from ._strict_base import StrictModel, StrictRequestModel, money_to_float


class OpenBookingPaymentRequest(StrictRequestModel):
    """Open the booking's authorization; the client's customer is used by default."""

    customer_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class RepriceBookingRequest(StrictRequestModel):
    payment_amount: Decimal = Field(
        ..., gt=0, max_digits=10, decimal_places=2, description="New gross charge in dollars"
    )
    base_service_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        max_digits=10,
        decimal_places=2,
        description="Contractor's new base price; omit for legacy bookings",
    )
    expected_payment_intent_id: Optional[str] = Field(
        default=None,
        description="Intent id the caller last saw; a mismatch is rejected as a conflict",
    )
    customer_id: Optional[str] = None
    payment_method_id: Optional[str] = None


class MarkCompletedRequest(StrictRequestModel):
    party: CompletionParty


class BookingPaymentStateResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str
    status: str
    payment_status: str
    payment_intent_id: Optional[str] = None
    client_completed: bool
    contractor_completed: bool
    payment_amount: Optional[float] = None
    base_service_amount: Optional[float] = None
    platform_fee: Optional[float] = None
    stripe_fee: Optional[float] = None
    net_payout: Optional[float] = None

    @field_validator(
        "payment_amount",
        "base_service_amount",
        "platform_fee",
        "stripe_fee",
        "net_payout",
        mode="before",
    )
    @classmethod
    def _coerce_money(cls, v: object) -> Optional[float]:
        return money_to_float(v)


class CaptureResponse(StrictModel):
    """Amounts recorded when the payout was released (dollars)."""

    success: bool = True
    payment_intent_id: str
    total_amount: float
    platform_fee: float
    stripe_fee: float
    net_payout: float
    fee_estimated: bool = Field(
        default=False, description="True when the processor fee is the pre-capture estimate"
    )

    @classmethod
    def from_result(cls, result: CaptureResult) -> "CaptureResponse":
        return cls(
            payment_intent_id=result.payment_intent_id,
            total_amount=float(result.total_amount),
            platform_fee=float(result.platform_fee),
            stripe_fee=float(result.stripe_fee),
            net_payout=float(result.net_payout),
            fee_estimated=result.fee_estimated,
        )
