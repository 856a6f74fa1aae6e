# backend/borkin/services/payment_history_service.py
"""
Read-only payment views: saved cards, contractor payouts, client history and
the hosted billing portal.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..integrations.payment_processor import (
    IntentRecord,
    PaymentMethodRecord,
    PaymentProcessor,
    PaymentProcessorError,
    TransferRecord,
)
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .payment_account_service import PaymentAccountService

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20
CLIENT_PAYMENTS_PATH = "/dashboard/payments"


@dataclass(frozen=True)
class SavedCard:
    id: str
    brand: Optional[str]
    last4: Optional[str]
    exp_month: Optional[int]
    exp_year: Optional[int]
    is_default: bool = False

    @classmethod
    def from_record(cls, record: PaymentMethodRecord, *, is_default: bool) -> "SavedCard":
        return cls(
            id=record.id,
            brand=record.brand,
            last4=record.last4,
            exp_month=record.exp_month,
            exp_year=record.exp_year,
            is_default=is_default,
        )


@dataclass(frozen=True)
class ClientPaymentHistory:
    payments: List[IntentRecord]
    completed_bookings: List[Booking]
    total_spent: Decimal
    total_bookings: int


class PaymentHistoryService(BaseService):
    def __init__(
        self,
        db: Session,
        *,
        processor: PaymentProcessor,
        account_service: PaymentAccountService,
        app_url: str = "http://localhost:3000",
    ):
        super().__init__(db)
        self.processor = processor
        self.account_service = account_service
        self.app_url = app_url.rstrip("/")
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @staticmethod
    def _require(name: str, value: Optional[str]) -> None:
        if not value:
            raise ValidationException(f"Missing {name}", code="MISSING_FIELDS", details={"missing": [name]})

    @BaseService.measure_operation("list_payment_methods")
    def list_payment_methods(self, customer_id: str) -> List[SavedCard]:
        """
        Cards saved on the customer, flagging the invoice default.

        Some cards only exist as the customer's default (e.g. attached through
        the billing portal) and are missing from the listing; that default is
        fetched directly when the listing comes back empty.
        """
        self._require("customer_id", customer_id)
        records = self.processor.list_card_payment_methods(customer_id)
        customer = self.processor.retrieve_customer(customer_id)
        default_id = None if customer.deleted else customer.default_payment_method

        cards = [SavedCard.from_record(pm, is_default=pm.id == default_id) for pm in records]
        if cards or not default_id:
            return cards

        try:
            default_pm = self.processor.retrieve_payment_method(default_id)
        except PaymentProcessorError as exc:
            self.logger.error(f"Could not fetch default payment method {default_id}: {str(exc)}")
            return []
        if default_pm.last4 is None:
            return []
        return [SavedCard.from_record(default_pm, is_default=True)]

    @BaseService.measure_operation("list_contractor_payouts")
    def list_contractor_payouts(
        self, account_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> List[TransferRecord]:
        self._require("account_id", account_id)
        return self.processor.list_transfers(account_id, limit=limit)

    @BaseService.measure_operation("list_client_payments")
    def list_client_payments(self, customer_id: str, client_id: str) -> ClientPaymentHistory:
        """Recent intents for the customer plus the client's paid bookings, newest first."""
        self._require("customer_id", customer_id)
        self._require("client_id", client_id)

        payments = self.processor.list_payment_intents(customer_id, limit=DEFAULT_HISTORY_LIMIT)
        bookings = self.booking_repository.get_paid_bookings_for_client(client_id)
        total_spent = sum(
            (Decimal(b.payment_amount) for b in bookings if b.payment_amount is not None),
            Decimal("0"),
        )
        return ClientPaymentHistory(
            payments=payments,
            completed_bookings=bookings,
            total_spent=total_spent,
            total_bookings=len(bookings),
        )

    @BaseService.measure_operation("create_portal_session")
    def create_portal_session(self, client_id: str, return_url: Optional[str] = None) -> str:
        """Billing portal URL for the client, provisioning their customer if needed."""
        self._require("client_id", client_id)
        customer, _ = self.account_service.ensure_client_customer(client_id)
        return self.processor.create_billing_portal_session(
            customer.id, return_url=return_url or f"{self.app_url}{CLIENT_PAYMENTS_PATH}"
        )
