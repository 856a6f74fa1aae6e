# backend/borkin/services/__init__.py
"""
Service layer for the Borkin payment backend.

Services own business rules and transaction boundaries; repositories only
read and write rows, and the payment processor is reached through
``integrations.payment_processor.PaymentProcessor``.
"""

from .account_removal_service import AccountRemovalService, PartialSuccessWarning
from .base import BaseService
from .booking_payment_service import BookingPaymentService, CaptureResult
from .payment_account_service import PaymentAccountService
from .payment_history_service import PaymentHistoryService
from .payment_intent_service import PaymentIntentResult, PaymentIntentService

__all__ = [
    "AccountRemovalService",
    "BaseService",
    "BookingPaymentService",
    "CaptureResult",
    "PartialSuccessWarning",
    "PaymentAccountService",
    "PaymentHistoryService",
    "PaymentIntentResult",
    "PaymentIntentService",
]
