# backend/borkin/core/enums.py
"""
Core enums for the Borkin platform.

Booking and payment statuses are stored as plain strings on the booking row;
these enums are the single source of the allowed values.
"""

from enum import Enum
from typing import FrozenSet


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment state of a booking as tracked on our side."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentEnvironment(str, Enum):
    """Processor environment a key (and every object it created) belongs to."""

    TEST = "test"
    LIVE = "live"


class CompletionParty(str, Enum):
    """Which side of a booking is confirming completion."""

    CLIENT = "client"
    CONTRACTOR = "contractor"


class AccountRole(str, Enum):
    CLIENT = "client"
    CONTRACTOR = "contractor"


class IntentStatus(str, Enum):
    """Stripe PaymentIntent statuses."""

    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"


# Intents not yet authorized can be edited in place
UPDATABLE_INTENT_STATUSES: FrozenSet[str] = frozenset(
    {
        IntentStatus.REQUIRES_PAYMENT_METHOD.value,
        IntentStatus.REQUIRES_CONFIRMATION.value,
        IntentStatus.REQUIRES_ACTION.value,
    }
)

# Intents that must not be canceled before a replacement is opened
TERMINAL_INTENT_STATUSES: FrozenSet[str] = frozenset(
    {IntentStatus.CANCELED.value, IntentStatus.SUCCEEDED.value}
)
