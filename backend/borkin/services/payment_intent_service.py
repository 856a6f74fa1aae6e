# backend/borkin/services/payment_intent_service.py
"""
Payment intent orchestration.

Intents are manual-capture authorizations carrying a transfer to the
contractor's payout account, so funds only move once the booking is
completed. Fee math always runs before any processor call; a booking whose
fees leave nothing for the contractor never reaches the processor.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.enums import (
    TERMINAL_INTENT_STATUSES,
    UPDATABLE_INTENT_STATUSES,
    IntentStatus,
    PaymentEnvironment,
)
from ..core.exceptions import (
    AlreadyCapturedException,
    NotReadyForCaptureException,
    ValidationException,
)
from ..integrations.payment_processor import (
    IntentRecord,
    PaymentIntentStateError,
    PaymentProcessor,
    SettlementRecord,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from .base import BaseService
from .fee_calculator import FeeBreakdown, FeeSchedule, compute_fees
from .payment_account_service import PaymentAccountService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntentResult:
    intent_id: str
    client_secret: Optional[str]
    status: str
    fees: FeeBreakdown
    replaced: bool = False


class PaymentIntentService(BaseService):
    """Creates, edits, cancels and captures booking authorizations."""

    def __init__(
        self,
        db: Session,
        *,
        processor: PaymentProcessor,
        account_service: PaymentAccountService,
        fee_schedule: FeeSchedule,
        environment: PaymentEnvironment,
    ):
        super().__init__(db)
        self.processor = processor
        self.account_service = account_service
        self.fee_schedule = fee_schedule
        self.environment = environment

    def _validate_parties(self, currency: str, customer_id: str, contractor_id: str) -> None:
        missing = [
            name
            for name, value in (
                ("currency", currency),
                ("customer_id", customer_id),
                ("contractor_id", contractor_id),
            )
            if not value
        ]
        if missing:
            raise ValidationException(
                "Missing required payment fields",
                code="MISSING_FIELDS",
                details={"missing": missing},
            )

    def _metadata(
        self,
        fees: FeeBreakdown,
        contractor_id: str,
        booking_id: Optional[str],
        replaces: Optional[str] = None,
    ) -> Dict[str, str]:
        metadata = fees.as_metadata()
        metadata["contractor_id"] = contractor_id
        metadata["mode"] = self.environment.value
        if booking_id:
            metadata["booking_id"] = booking_id
        if replaces:
            metadata["replaces_payment_intent"] = replaces
        return metadata

    @BaseService.measure_operation("create_payment_intent")
    def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        customer_id: str,
        contractor_id: str,
        base_service_amount_cents: Optional[int] = None,
        payment_method_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        *,
        replaces: Optional[str] = None,
    ) -> PaymentIntentResult:
        """
        Open a manual-capture intent that transfers the contractor's share on capture.

        Raises:
            ValidationException: Missing fields or inconsistent amounts
            FeeComputationException: Transfer amount would not be positive
            NoPayoutAccountException: Contractor cannot receive transfers yet
            PaymentProcessorError: Processor rejected the request
        """
        self._validate_parties(currency, customer_id, contractor_id)
        fees = compute_fees(amount_cents, base_service_amount_cents, self.fee_schedule)
        fees.ensure_transferable()

        destination = self.account_service.resolve_transfer_destination(contractor_id)

        intent = self.processor.create_payment_intent(
            amount=fees.amount_cents,
            currency=currency,
            customer=customer_id,
            destination=destination,
            transfer_amount=fees.transfer_amount_cents,
            metadata=self._metadata(fees, contractor_id, booking_id, replaces),
            payment_method=payment_method_id,
        )
        prometheus_metrics.record_payment_event("intent_created")
        self.logger.info(
            "Created payment intent %s amount=%s transfer=%s destination=%s",
            intent.id,
            fees.amount_cents,
            fees.transfer_amount_cents,
            destination,
        )
        return PaymentIntentResult(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
            fees=fees,
            replaced=replaces is not None,
        )

    @BaseService.measure_operation("update_payment_intent")
    def update_payment_intent(
        self,
        intent_id: str,
        new_amount_cents: int,
        currency: str,
        customer_id: str,
        contractor_id: str,
        base_service_amount_cents: Optional[int] = None,
        payment_method_id: Optional[str] = None,
        booking_id: Optional[str] = None,
    ) -> PaymentIntentResult:
        """
        Change the amount of an existing intent.

        Intents that are not yet authorized are edited in place. An authorized
        intent cannot change amount, so it is canceled and a successor is opened
        (``replaced=True``); an unchanged amount leaves it alone.

        Raises:
            AlreadyCapturedException: The intent was captured; its amount is final
        """
        if not intent_id:
            raise ValidationException("Missing payment intent id", code="MISSING_FIELDS")
        self._validate_parties(currency, customer_id, contractor_id)
        fees = compute_fees(new_amount_cents, base_service_amount_cents, self.fee_schedule)
        fees.ensure_transferable()

        current = self.processor.retrieve_payment_intent(intent_id)

        if current.status == IntentStatus.SUCCEEDED.value:
            # Funds already moved; a successor would charge the client twice
            raise AlreadyCapturedException(intent_id, current.status)

        if current.status in UPDATABLE_INTENT_STATUSES:
            updated = self.processor.update_payment_intent(
                intent_id,
                amount=fees.amount_cents,
                transfer_amount=fees.transfer_amount_cents,
                metadata=self._metadata(fees, contractor_id, booking_id),
            )
            prometheus_metrics.record_payment_event("intent_updated")
            self.logger.info(
                "Updated payment intent %s in place (%s -> %s)",
                intent_id,
                current.amount,
                fees.amount_cents,
            )
            return PaymentIntentResult(
                intent_id=updated.id,
                client_secret=updated.client_secret,
                status=updated.status,
                fees=fees,
                replaced=False,
            )

        if current.status == IntentStatus.REQUIRES_CAPTURE.value and current.amount == fees.amount_cents:
            self.logger.info("Payment intent %s already authorized for %s", intent_id, current.amount)
            return PaymentIntentResult(
                intent_id=current.id,
                client_secret=current.client_secret,
                status=current.status,
                fees=fees,
                replaced=False,
            )

        if current.status not in TERMINAL_INTENT_STATUSES:
            self.cancel_payment_intent(intent_id)

        self.logger.info(
            "Replacing payment intent %s (status=%s) with a new authorization for %s",
            intent_id,
            current.status,
            fees.amount_cents,
        )
        return self.create_payment_intent(
            fees.amount_cents,
            currency,
            customer_id,
            contractor_id,
            base_service_amount_cents,
            payment_method_id,
            booking_id,
            replaces=intent_id,
        )

    @BaseService.measure_operation("cancel_payment_intent")
    def cancel_payment_intent(self, intent_id: str) -> str:
        """Cancel an intent; canceling an already-canceled intent succeeds."""
        if not intent_id:
            raise ValidationException("Missing payment intent id", code="MISSING_FIELDS")
        try:
            canceled = self.processor.cancel_payment_intent(intent_id)
        except PaymentIntentStateError:
            current = self.processor.retrieve_payment_intent(intent_id)
            if current.status == IntentStatus.CANCELED.value:
                self.logger.info("Payment intent %s was already canceled", intent_id)
                return current.status
            raise
        prometheus_metrics.record_payment_event("intent_canceled")
        return canceled.status

    @BaseService.measure_operation("capture_payment_intent")
    def capture_payment_intent(
        self, intent_id: str, *, idempotency_key: Optional[str] = None
    ) -> IntentRecord:
        """
        Capture an authorized intent.

        Raises:
            AlreadyCapturedException: Another request captured or canceled it first
            NotReadyForCaptureException: The intent is not authorized
        """
        try:
            captured = self.processor.capture_payment_intent(
                intent_id, idempotency_key=idempotency_key
            )
        except PaymentIntentStateError as exc:
            if exc.current_status in (None, *TERMINAL_INTENT_STATUSES):
                self.logger.warning(
                    "Capture of %s rejected; already %s", intent_id, exc.current_status or "settled"
                )
                raise AlreadyCapturedException(intent_id, exc.current_status) from exc
            raise NotReadyForCaptureException(intent_id, exc.current_status) from exc
        prometheus_metrics.record_payment_event("intent_captured")
        return captured

    def retrieve_payment_intent(self, intent_id: str) -> IntentRecord:
        return self.processor.retrieve_payment_intent(intent_id)

    def retrieve_settlement(self, intent_id: str) -> Optional[SettlementRecord]:
        return self.processor.retrieve_settlement(intent_id)
