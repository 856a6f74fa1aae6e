# backend/borkin/integrations/payment_processor.py
"""
Payment processor capability.

Services talk to the processor only through ``PaymentProcessor`` and receive
plain records back, so the orchestration logic can run against an in-memory
fake. ``StripePaymentProcessor`` is the production implementation backed by
the ``stripe`` SDK (destination charges on Express connected accounts).
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

from pydantic import SecretStr
import stripe

from ..core.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)

MODE_MISMATCH_MARKERS = (
    "similar object exists in test mode",
    "similar object exists in live mode",
)
UNEXPECTED_STATE_CODE = "payment_intent_unexpected_state"


class PaymentProcessorError(ExternalServiceException):
    """A processor call failed; status, code and message are kept verbatim."""

    def __init__(
        self,
        message: str,
        *,
        http_status: Optional[int] = None,
        processor_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=processor_code or "PAYMENT_PROCESSOR_ERROR",
            details={"processor_status": http_status, "processor_code": processor_code, **(details or {})},
        )
        self.http_status = http_status
        self.processor_code = processor_code


class ProcessorModeMismatchError(PaymentProcessorError):
    """The referenced object was created under the other test/live environment."""


class PaymentIntentStateError(PaymentProcessorError):
    """The intent is not in a state that allows the requested transition."""

    def __init__(self, message: str, *, current_status: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.current_status = current_status
        self.details["status"] = current_status


@dataclass(frozen=True)
class IntentRecord:
    id: str
    status: str
    amount: int
    currency: str
    client_secret: Optional[str] = None
    customer: Optional[str] = None
    transfer_destination: Optional[str] = None
    transfer_amount: Optional[int] = None
    description: Optional[str] = None
    created: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AccountRecord:
    id: str
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    email: Optional[str] = None


@dataclass(frozen=True)
class CustomerRecord:
    id: str
    email: Optional[str] = None
    default_payment_method: Optional[str] = None
    deleted: bool = False


@dataclass(frozen=True)
class SettlementRecord:
    """Settled charge and its balance transaction; fee/net are None until known."""

    charge_id: str
    amount: int
    fee: Optional[int] = None
    net: Optional[int] = None


@dataclass(frozen=True)
class PaymentMethodRecord:
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


@dataclass(frozen=True)
class TransferRecord:
    id: str
    amount: int
    currency: str
    created: Optional[int] = None
    description: Optional[str] = None


class PaymentProcessor(Protocol):
    """Interface to the external payment processor."""

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        customer: str,
        destination: str,
        transfer_amount: int,
        metadata: Mapping[str, str],
        payment_method: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> IntentRecord:
        ...

    def retrieve_payment_intent(self, intent_id: str) -> IntentRecord:
        ...

    def update_payment_intent(
        self,
        intent_id: str,
        *,
        amount: int,
        transfer_amount: int,
        metadata: Mapping[str, str],
    ) -> IntentRecord:
        ...

    def cancel_payment_intent(
        self, intent_id: str, *, idempotency_key: Optional[str] = None
    ) -> IntentRecord:
        ...

    def capture_payment_intent(
        self, intent_id: str, *, idempotency_key: Optional[str] = None
    ) -> IntentRecord:
        ...

    def list_payment_intents(self, customer: str, *, limit: int = 20) -> List[IntentRecord]:
        ...

    def retrieve_settlement(self, intent_id: str) -> Optional[SettlementRecord]:
        ...

    def retrieve_account(self, account_id: str) -> AccountRecord:
        ...

    def create_express_account(self, *, email: Optional[str], metadata: Mapping[str, str]) -> AccountRecord:
        ...

    def create_account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> str:
        ...

    def retrieve_customer(self, customer_id: str) -> CustomerRecord:
        ...

    def create_customer(
        self, *, email: Optional[str], name: Optional[str], metadata: Mapping[str, str]
    ) -> CustomerRecord:
        ...

    def list_card_payment_methods(self, customer_id: str) -> List[PaymentMethodRecord]:
        ...

    def retrieve_payment_method(self, payment_method_id: str) -> PaymentMethodRecord:
        ...

    def list_transfers(self, destination: str, *, limit: int = 20) -> List[TransferRecord]:
        ...

    def create_billing_portal_session(self, customer_id: str, *, return_url: str) -> str:
        ...


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a StripeObject, a plain dict or an attribute bag."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _expandable_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return _field(value, "id")


def translate_stripe_error(exc: stripe.StripeError) -> PaymentProcessorError:
    """Map a Stripe SDK error onto the processor error hierarchy."""
    message = getattr(exc, "user_message", None) or str(exc)
    raw_message = str(exc)
    http_status = getattr(exc, "http_status", None)
    code = getattr(exc, "code", None)

    if any(marker in raw_message for marker in MODE_MISMATCH_MARKERS):
        return ProcessorModeMismatchError(message, http_status=http_status, processor_code=code)
    if code == UNEXPECTED_STATE_CODE:
        error_body = getattr(exc, "error", None)
        current_status = _field(_field(error_body, "payment_intent"), "status")
        return PaymentIntentStateError(
            message,
            current_status=current_status,
            http_status=http_status,
            processor_code=code,
        )
    return PaymentProcessorError(message, http_status=http_status, processor_code=code)


def _intent_record(pi: Any) -> IntentRecord:
    transfer_data = _field(pi, "transfer_data") or {}
    metadata = _field(pi, "metadata") or {}
    return IntentRecord(
        id=_field(pi, "id"),
        status=_field(pi, "status"),
        amount=int(_field(pi, "amount", 0) or 0),
        currency=_field(pi, "currency", "usd"),
        client_secret=_field(pi, "client_secret"),
        customer=_expandable_id(_field(pi, "customer")),
        transfer_destination=_expandable_id(_field(transfer_data, "destination")),
        transfer_amount=_field(transfer_data, "amount"),
        description=_field(pi, "description"),
        created=_field(pi, "created"),
        metadata={str(k): str(v) for k, v in dict(metadata).items()},
    )


def _account_record(account: Any) -> AccountRecord:
    return AccountRecord(
        id=_field(account, "id"),
        details_submitted=bool(_field(account, "details_submitted", False)),
        charges_enabled=bool(_field(account, "charges_enabled", False)),
        payouts_enabled=bool(_field(account, "payouts_enabled", False)),
        email=_field(account, "email"),
    )


def _customer_record(customer: Any) -> CustomerRecord:
    invoice_settings = _field(customer, "invoice_settings") or {}
    return CustomerRecord(
        id=_field(customer, "id"),
        email=_field(customer, "email"),
        default_payment_method=_expandable_id(_field(invoice_settings, "default_payment_method")),
        deleted=bool(_field(customer, "deleted", False)),
    )


def _payment_method_record(pm: Any) -> PaymentMethodRecord:
    card = _field(pm, "card") or {}
    return PaymentMethodRecord(
        id=_field(pm, "id"),
        brand=_field(card, "brand"),
        last4=_field(card, "last4"),
        exp_month=_field(card, "exp_month"),
        exp_year=_field(card, "exp_year"),
    )


def _transfer_record(transfer: Any) -> TransferRecord:
    return TransferRecord(
        id=_field(transfer, "id"),
        amount=int(_field(transfer, "amount", 0) or 0),
        currency=_field(transfer, "currency", "usd"),
        created=_field(transfer, "created"),
        description=_field(transfer, "description"),
    )


class StripePaymentProcessor:
    """``PaymentProcessor`` backed by the Stripe API."""

    def __init__(
        self,
        api_key: str | SecretStr,
        *,
        timeout_seconds: int = 8,
        client: Optional[stripe.StripeClient] = None,
    ) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        if not secret_value:
            raise ValueError("Stripe secret key must be provided")
        # Fail fast on a slow processor; callers own any retry policy
        self._client = client or stripe.StripeClient(
            secret_value,
            http_client=stripe.RequestsClient(timeout=timeout_seconds),
            max_network_retries=0,
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    def _call(self, operation: str, fn: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except stripe.StripeError as exc:
            error = translate_stripe_error(exc)
            self.logger.error(f"Stripe error during {operation}: {str(exc)}")
            raise error from exc

    @staticmethod
    def _options(idempotency_key: Optional[str]) -> Dict[str, Any]:
        return {"idempotency_key": idempotency_key} if idempotency_key else {}

    # Payment intents

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        customer: str,
        destination: str,
        transfer_amount: int,
        metadata: Mapping[str, str],
        payment_method: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> IntentRecord:
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "customer": customer,
            "capture_method": "manual",
            "transfer_data": {"destination": destination, "amount": transfer_amount},
            "metadata": dict(metadata),
        }
        if payment_method:
            params.update(payment_method=payment_method, confirm=True, off_session=True)
        else:
            params["automatic_payment_methods"] = {"enabled": True}
        pi = self._call(
            "create_payment_intent",
            self._client.payment_intents.create,
            params=params,
            options=self._options(idempotency_key),
        )
        return _intent_record(pi)

    def retrieve_payment_intent(self, intent_id: str) -> IntentRecord:
        return _intent_record(
            self._call("retrieve_payment_intent", self._client.payment_intents.retrieve, intent_id)
        )

    def update_payment_intent(
        self,
        intent_id: str,
        *,
        amount: int,
        transfer_amount: int,
        metadata: Mapping[str, str],
    ) -> IntentRecord:
        pi = self._call(
            "update_payment_intent",
            self._client.payment_intents.update,
            intent_id,
            params={
                "amount": amount,
                "transfer_data": {"amount": transfer_amount},
                "metadata": dict(metadata),
            },
        )
        return _intent_record(pi)

    def cancel_payment_intent(
        self, intent_id: str, *, idempotency_key: Optional[str] = None
    ) -> IntentRecord:
        return _intent_record(
            self._call(
                "cancel_payment_intent",
                self._client.payment_intents.cancel,
                intent_id,
                options=self._options(idempotency_key),
            )
        )

    def capture_payment_intent(
        self, intent_id: str, *, idempotency_key: Optional[str] = None
    ) -> IntentRecord:
        return _intent_record(
            self._call(
                "capture_payment_intent",
                self._client.payment_intents.capture,
                intent_id,
                options=self._options(idempotency_key),
            )
        )

    def list_payment_intents(self, customer: str, *, limit: int = 20) -> List[IntentRecord]:
        page = self._call(
            "list_payment_intents",
            self._client.payment_intents.list,
            params={"customer": customer, "limit": limit},
        )
        return [_intent_record(pi) for pi in _field(page, "data", [])]

    def retrieve_settlement(self, intent_id: str) -> Optional[SettlementRecord]:
        pi = self._call(
            "retrieve_settlement",
            self._client.payment_intents.retrieve,
            intent_id,
            params={"expand": ["latest_charge.balance_transaction"]},
        )
        charge = _field(pi, "latest_charge")
        if charge is None:
            return None
        if isinstance(charge, str):
            charge = self._call(
                "retrieve_charge",
                self._client.charges.retrieve,
                charge,
                params={"expand": ["balance_transaction"]},
            )
        balance_tx = _field(charge, "balance_transaction")
        if isinstance(balance_tx, str):
            balance_tx = self._call(
                "retrieve_balance_transaction",
                self._client.balance_transactions.retrieve,
                balance_tx,
            )
        return SettlementRecord(
            charge_id=_field(charge, "id"),
            amount=int(_field(charge, "amount", 0) or 0),
            fee=_field(balance_tx, "fee"),
            net=_field(balance_tx, "net"),
        )

    # Connected accounts

    def retrieve_account(self, account_id: str) -> AccountRecord:
        return _account_record(
            self._call("retrieve_account", self._client.accounts.retrieve, account_id)
        )

    def create_express_account(
        self, *, email: Optional[str], metadata: Mapping[str, str]
    ) -> AccountRecord:
        params: Dict[str, Any] = {
            "type": "express",
            "capabilities": {"transfers": {"requested": True}},
            "metadata": dict(metadata),
        }
        if email:
            params["email"] = email
        account = self._call(
            "create_express_account", self._client.accounts.create, params=params
        )
        return _account_record(account)

    def create_account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> str:
        link = self._call(
            "create_account_link",
            self._client.account_links.create,
            params={
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
        )
        return str(_field(link, "url", ""))

    # Customers and payment methods

    def retrieve_customer(self, customer_id: str) -> CustomerRecord:
        return _customer_record(
            self._call("retrieve_customer", self._client.customers.retrieve, customer_id)
        )

    def create_customer(
        self, *, email: Optional[str], name: Optional[str], metadata: Mapping[str, str]
    ) -> CustomerRecord:
        params: Dict[str, Any] = {"metadata": dict(metadata)}
        if email:
            params["email"] = email
        if name:
            params["name"] = name
        customer = self._call("create_customer", self._client.customers.create, params=params)
        return _customer_record(customer)

    def list_card_payment_methods(self, customer_id: str) -> List[PaymentMethodRecord]:
        page = self._call(
            "list_payment_methods",
            self._client.payment_methods.list,
            params={"customer": customer_id, "type": "card"},
        )
        return [_payment_method_record(pm) for pm in _field(page, "data", [])]

    def retrieve_payment_method(self, payment_method_id: str) -> PaymentMethodRecord:
        return _payment_method_record(
            self._call(
                "retrieve_payment_method", self._client.payment_methods.retrieve, payment_method_id
            )
        )

    # Payouts and billing

    def list_transfers(self, destination: str, *, limit: int = 20) -> List[TransferRecord]:
        page = self._call(
            "list_transfers",
            self._client.transfers.list,
            params={"destination": destination, "limit": limit},
        )
        return [_transfer_record(t) for t in _field(page, "data", [])]

    def create_billing_portal_session(self, customer_id: str, *, return_url: str) -> str:
        session = self._call(
            "create_billing_portal_session",
            self._client.billing_portal.sessions.create,
            params={"customer": customer_id, "return_url": return_url},
        )
        return str(_field(session, "url", ""))
