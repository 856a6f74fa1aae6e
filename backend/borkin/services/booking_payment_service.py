# backend/borkin/services/booking_payment_service.py
"""
Booking payments: opening and repricing a booking's authorization, tracking
completion by both parties, and releasing the payout.

Capture is permitted exactly once, and only after the client and the
contractor have both marked the booking completed. The processor is the
arbiter between racing captures (an intent can only be captured once); the
booking row's version column guards the bookkeeping written afterwards.
Processor failures never leave a partially updated booking behind.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, CompletionParty, IntentStatus, PaymentStatus
from ..core.exceptions import (
    AlreadyPaidException,
    BookingNotFoundException,
    BusinessRuleException,
    CompletionPendingException,
    ConflictException,
    NotReadyException,
    NotReadyForCaptureException,
    PaymentIntentConflictException,
    StaleBookingException,
    ValidationException,
)
from ..integrations.payment_processor import IntentRecord, PaymentProcessorError, SettlementRecord
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .fee_calculator import FeeSchedule, compute_fees, net_payout, to_cents, to_major_units
from .payment_account_service import PaymentAccountService
from .payment_intent_service import PaymentIntentResult, PaymentIntentService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureResult:
    """Amounts recorded on the booking once its payment was released (major units)."""

    payment_intent_id: str
    total_amount: Decimal
    platform_fee: Decimal
    stripe_fee: Decimal
    net_payout: Decimal
    fee_estimated: bool = False


class BookingPaymentService(BaseService):
    """Ties payment intents to bookings and reconciles completion with payout."""

    def __init__(
        self,
        db: Session,
        *,
        intent_service: PaymentIntentService,
        account_service: PaymentAccountService,
        fee_schedule: FeeSchedule,
        currency: str = "usd",
    ):
        super().__init__(db)
        self.intent_service = intent_service
        self.account_service = account_service
        self.fee_schedule = fee_schedule
        self.currency = currency
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_fresh(booking_id)
        if not booking:
            raise BookingNotFoundException(booking_id)
        return booking

    def _ensure_open(self, booking: Booking) -> None:
        if booking.is_paid:
            raise AlreadyPaidException(booking.id)
        if booking.status == BookingStatus.CANCELLED.value:
            raise BusinessRuleException(
                "Booking has been cancelled",
                code="BOOKING_CANCELLED",
                details={"booking_id": booking.id},
            )

    def _resolve_customer(self, booking: Booking, customer_id: Optional[str]) -> str:
        if customer_id:
            return customer_id
        customer, _ = self.account_service.ensure_client_customer(booking.client_id)
        return customer.id

    def _discard_orphan_intent(self, intent_id: str) -> None:
        """Cancel an intent whose booking write lost a race."""
        try:
            self.intent_service.cancel_payment_intent(intent_id)
        except PaymentProcessorError as exc:
            self.logger.error(f"Failed to cancel orphaned payment intent {intent_id}: {str(exc)}")

    @staticmethod
    def _amount_cents(value: Any) -> Optional[int]:
        return None if value is None else to_cents(value)

    # ------------------------------------------------------------------ #
    # Authorization
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("open_booking_payment")
    def open_booking_payment(
        self,
        booking_id: str,
        *,
        customer_id: Optional[str] = None,
        payment_method_id: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> PaymentIntentResult:
        """Create the booking's authorization and record it on the booking."""
        booking = self._get_booking(booking_id)
        self._ensure_open(booking)
        if booking.payment_intent_id:
            raise ConflictException(
                "Booking already has a payment intent; reprice it instead",
                code="PAYMENT_INTENT_EXISTS",
                details={"booking_id": booking.id, "payment_intent_id": booking.payment_intent_id},
            )

        result = self.intent_service.create_payment_intent(
            self._amount_cents(booking.payment_amount),
            currency or self.currency,
            self._resolve_customer(booking, customer_id),
            booking.contractor_id,
            self._amount_cents(booking.base_service_amount),
            payment_method_id,
            booking.id,
        )

        try:
            with self.transaction():
                self.booking_repository.apply_versioned(
                    booking,
                    payment_intent_id=result.intent_id,
                    platform_fee=to_major_units(result.fees.platform_fee_cents),
                    payment_status=PaymentStatus.PENDING.value,
                )
        except StaleBookingException:
            self._discard_orphan_intent(result.intent_id)
            raise
        return result

    @BaseService.measure_operation("reprice_booking")
    def reprice_booking(
        self,
        booking_id: str,
        new_payment_amount: Decimal,
        new_base_service_amount: Optional[Decimal] = None,
        *,
        expected_payment_intent_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        payment_method_id: Optional[str] = None,
    ) -> PaymentIntentResult:
        """
        Change a booking's price and bring its authorization in line.

        The booking is re-read immediately before acting. When the caller passes
        the intent id it last saw and the booking now points elsewhere, another
        request already replaced the intent and this one must retry.
        """
        booking = self._get_booking(booking_id)
        self._ensure_open(booking)
        if (
            expected_payment_intent_id is not None
            and expected_payment_intent_id != booking.payment_intent_id
        ):
            raise PaymentIntentConflictException(
                booking.id, expected_payment_intent_id, booking.payment_intent_id
            )

        amount_cents = to_cents(new_payment_amount)
        base_cents = self._amount_cents(new_base_service_amount)
        resolved_customer = self._resolve_customer(booking, customer_id)
        previous_intent_id = booking.payment_intent_id

        if previous_intent_id:
            result = self.intent_service.update_payment_intent(
                previous_intent_id,
                amount_cents,
                self.currency,
                resolved_customer,
                booking.contractor_id,
                base_cents,
                payment_method_id,
                booking.id,
            )
        else:
            result = self.intent_service.create_payment_intent(
                amount_cents,
                self.currency,
                resolved_customer,
                booking.contractor_id,
                base_cents,
                payment_method_id,
                booking.id,
            )

        try:
            with self.transaction():
                self.booking_repository.apply_versioned(
                    booking,
                    payment_amount=to_major_units(amount_cents),
                    base_service_amount=(
                        to_major_units(base_cents) if base_cents is not None else None
                    ),
                    payment_intent_id=result.intent_id,
                    platform_fee=to_major_units(result.fees.platform_fee_cents),
                )
        except StaleBookingException:
            if result.intent_id != previous_intent_id:
                self._discard_orphan_intent(result.intent_id)
            raise
        return result

    # ------------------------------------------------------------------ #
    # Completion
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("mark_completed")
    def mark_completed(self, booking_id: str, party: CompletionParty | str) -> Booking:
        try:
            party = CompletionParty(party)
        except ValueError as exc:
            raise ValidationException(
                "party must be 'client' or 'contractor'",
                code="INVALID_PARTY",
                details={"party": str(party)},
            ) from exc

        booking = self._get_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED.value:
            raise BusinessRuleException(
                "Booking has been cancelled",
                code="BOOKING_CANCELLED",
                details={"booking_id": booking.id},
            )

        field = "client_completed" if party == CompletionParty.CLIENT else "contractor_completed"
        with self.transaction():
            self.booking_repository.apply_versioned(booking, **{field: True})
        self.logger.info("Booking %s marked completed by %s", booking.id, party.value)
        return booking

    # ------------------------------------------------------------------ #
    # Payout release
    # ------------------------------------------------------------------ #

    def _actual_fee_cents(self, payment_intent_id: str) -> Optional[int]:
        """Processor fee from the settled balance transaction, when available."""
        try:
            settlement: Optional[SettlementRecord] = self.intent_service.retrieve_settlement(
                payment_intent_id
            )
        except PaymentProcessorError as exc:
            # The capture already happened; record the estimate rather than fail
            self.logger.warning(
                "Settlement lookup failed for %s after capture: %s", payment_intent_id, exc
            )
            return None
        if settlement is None or settlement.fee is None:
            return None
        return int(settlement.fee)

    def _result_from_booking(self, booking: Booking) -> CaptureResult:
        return CaptureResult(
            payment_intent_id=booking.payment_intent_id,
            total_amount=Decimal(booking.payment_amount),
            platform_fee=Decimal(booking.platform_fee),
            stripe_fee=Decimal(booking.stripe_fee),
            net_payout=Decimal(booking.net_payout),
        )

    @staticmethod
    def _metadata_cents(metadata: Mapping[str, str], key: str) -> Optional[int]:
        value = metadata.get(key)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed %s=%r in payment intent metadata", key, value)
            return None

    def _authorized_fee_cents(self, booking: Booking, intent: IntentRecord) -> Tuple[int, int]:
        """
        Platform fee and estimated processor fee (cents) fixed at authorization.

        The fee breakdown stored on the intent wins. Intents without it fall
        back to the platform fee recorded on the booking, then to the current
        schedule applied to the captured amount.
        """
        metadata = intent.metadata or {}
        platform_fee_cents = self._metadata_cents(metadata, "platform_fee_cents")
        processor_fee_cents = self._metadata_cents(metadata, "processor_fee_cents")
        if platform_fee_cents is None and booking.platform_fee is not None:
            platform_fee_cents = to_cents(booking.platform_fee)
        if platform_fee_cents is not None and processor_fee_cents is not None:
            return platform_fee_cents, processor_fee_cents

        base_cents = self._metadata_cents(metadata, "base_service_amount_cents")
        if base_cents is None and to_cents(booking.payment_amount) == intent.amount:
            base_cents = self._amount_cents(booking.base_service_amount)
        fees = compute_fees(intent.amount, base_cents, self.fee_schedule)
        return (
            fees.platform_fee_cents if platform_fee_cents is None else platform_fee_cents,
            fees.processor_fee_cents if processor_fee_cents is None else processor_fee_cents,
        )

    def _record_capture(
        self, booking_id: str, booking: Booking, fields: Dict[str, Any]
    ) -> Booking:
        try:
            with self.transaction():
                return self.booking_repository.apply_versioned(booking, **fields)
        except StaleBookingException:
            # Funds are captured; the row changed underneath us, so write onto the latest version
            fresh = self._get_booking(booking_id)
            if fresh.is_paid:
                return fresh
            captured_intent_id = fields["payment_intent_id"]
            if fresh.payment_intent_id and fresh.payment_intent_id != captured_intent_id:
                # A reprice swapped in a successor after the capture; it must never be charged
                self.logger.warning(
                    "Booking %s moved to intent %s after %s was captured; canceling it",
                    booking_id,
                    fresh.payment_intent_id,
                    captured_intent_id,
                )
                self._discard_orphan_intent(fresh.payment_intent_id)
            with self.transaction():
                return self.booking_repository.apply_versioned(fresh, **fields)

    @BaseService.measure_operation("capture_booking_payment")
    def capture_booking_payment(self, booking_id: str) -> CaptureResult:
        """
        Release the booking's payment to the contractor.

        The booking records what the processor captured: the intent's amount
        and the fees fixed when it was authorized. An intent that was captured
        by an earlier attempt whose booking write never landed is recorded
        without capturing again.

        Raises:
            BookingNotFoundException: Unknown booking
            CompletionPendingException: Either party has not marked completion
            AlreadyPaidException: Payment was released before
            NotReadyForCaptureException: Intent is not authorized (status included)
            AlreadyCapturedException: A concurrent request captured first
            PaymentProcessorError: Processor failure; the booking is left untouched
        """
        booking = self._get_booking(booking_id)

        if not booking.both_parties_completed:
            raise CompletionPendingException(
                booking.id,
                client_completed=bool(booking.client_completed),
                contractor_completed=bool(booking.contractor_completed),
            )
        if booking.is_paid:
            raise AlreadyPaidException(booking.id)

        payment_intent_id = booking.payment_intent_id
        if not payment_intent_id:
            raise NotReadyException(
                "Booking has no payment intent",
                code="NO_PAYMENT_INTENT",
                details={"booking_id": booking.id},
            )

        intent = self.intent_service.retrieve_payment_intent(payment_intent_id)
        if intent.status == IntentStatus.SUCCEEDED.value:
            self.logger.warning(
                "Payment intent %s was already captured; recording it on booking %s",
                payment_intent_id,
                booking_id,
            )
            prometheus_metrics.record_payment_event("capture_reconciled")
        elif intent.status != IntentStatus.REQUIRES_CAPTURE.value:
            raise NotReadyForCaptureException(payment_intent_id, intent.status)
        else:
            self.intent_service.capture_payment_intent(payment_intent_id)

        platform_fee_cents, estimated_fee_cents = self._authorized_fee_cents(booking, intent)
        actual_fee_cents = self._actual_fee_cents(payment_intent_id)
        fee_estimated = actual_fee_cents is None
        if fee_estimated:
            self.logger.warning(
                "Actual processor fee unavailable for %s; recording estimate", payment_intent_id
            )
            prometheus_metrics.record_payment_event("capture_fee_estimated")

        total_amount = to_major_units(intent.amount)
        platform_fee = to_major_units(platform_fee_cents)
        stripe_fee = to_major_units(
            estimated_fee_cents if actual_fee_cents is None else actual_fee_cents
        )
        payout = net_payout(total_amount, platform_fee, stripe_fee)

        fields: Dict[str, Any] = {
            "payment_intent_id": payment_intent_id,
            "payment_amount": total_amount,
            "payment_status": PaymentStatus.PAID.value,
            "status": BookingStatus.COMPLETED.value,
            "stripe_fee": stripe_fee,
            "net_payout": payout,
            "platform_fee": platform_fee,
        }
        base_cents = self._metadata_cents(intent.metadata or {}, "base_service_amount_cents")
        if base_cents is not None:
            fields["base_service_amount"] = to_major_units(base_cents)

        recorded = self._record_capture(booking_id, booking, fields)
        prometheus_metrics.record_payment_event("booking_paid")
        self.logger.info(
            f"Released payment for booking {booking_id}: intent={payment_intent_id} "
            f"fee={stripe_fee} net={payout}"
        )
        result = self._result_from_booking(recorded)
        if fee_estimated and recorded.stripe_fee == stripe_fee:
            return replace(result, fee_estimated=True)
        return result

    @BaseService.measure_operation("cancel_booking_payment")
    def cancel_booking_payment(self, booking_id: str) -> Booking:
        """Release the authorization and cancel the booking."""
        booking = self._get_booking(booking_id)
        if booking.is_paid:
            raise AlreadyPaidException(booking.id)

        if booking.payment_intent_id:
            self.intent_service.cancel_payment_intent(booking.payment_intent_id)

        with self.transaction():
            self.booking_repository.apply_versioned(
                booking,
                status=BookingStatus.CANCELLED.value,
                payment_status=PaymentStatus.CANCELLED.value,
            )
        self.logger.info("Cancelled booking %s and its payment", booking.id)
        return booking
