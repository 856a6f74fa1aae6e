from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
import stripe

from borkin.integrations.payment_processor import (
    UNEXPECTED_STATE_CODE,
    PaymentIntentStateError,
    PaymentProcessorError,
    ProcessorModeMismatchError,
    StripePaymentProcessor,
    translate_stripe_error,
)


class TestTranslateStripeError:
    def test_mode_mismatch(self) -> None:
        exc = stripe.InvalidRequestError(
            "No such customer: 'cus_1'; a similar object exists in live mode, "
            "but a test mode key was used to make this request.",
            "customer",
            code="resource_missing",
            http_status=400,
        )

        error = translate_stripe_error(exc)

        assert isinstance(error, ProcessorModeMismatchError)
        assert error.http_status == 400
        assert error.processor_code == "resource_missing"

    def test_unexpected_state_carries_current_status(self) -> None:
        exc = stripe.InvalidRequestError(
            "This PaymentIntent could not be captured because it has a status of canceled.",
            None,
            code=UNEXPECTED_STATE_CODE,
            http_status=400,
        )
        exc.error = {"payment_intent": {"id": "pi_1", "status": "canceled"}}

        error = translate_stripe_error(exc)

        assert isinstance(error, PaymentIntentStateError)
        assert error.current_status == "canceled"
        assert error.details["status"] == "canceled"

    def test_other_errors_keep_status_code_and_message(self) -> None:
        exc = stripe.CardError("Your card was declined.", None, "card_declined", http_status=402)

        error = translate_stripe_error(exc)

        assert type(error) is PaymentProcessorError
        assert error.http_status == 402
        assert error.processor_code == "card_declined"
        assert error.message == "Your card was declined."
        assert error.status_code == 502


def _processor(**services: Any) -> StripePaymentProcessor:
    """Processor over a stand-in client exposing only the given services."""
    client = SimpleNamespace(
        **{name: SimpleNamespace(**methods) for name, methods in services.items()}
    )
    return StripePaymentProcessor("sk_test_123", client=client)


class _Recorder:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self.calls.append({"args": args, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


class TestStripePaymentProcessor:
    def test_requires_secret_key(self) -> None:
        with pytest.raises(ValueError):
            StripePaymentProcessor("")

    def test_client_settings_stay_on_the_instance(self, monkeypatch) -> None:
        monkeypatch.setattr(stripe, "api_key", None)
        monkeypatch.setattr(stripe, "default_http_client", None)
        monkeypatch.setattr(stripe, "max_network_retries", 2)

        processor = StripePaymentProcessor("sk_test_123", timeout_seconds=3)

        assert isinstance(processor._client, stripe.StripeClient)
        assert stripe.api_key is None
        assert stripe.default_http_client is None
        assert stripe.max_network_retries == 2

    def test_creates_manual_capture_destination_charge(self) -> None:
        recorder = _Recorder(
            {
                "id": "pi_1",
                "status": "requires_payment_method",
                "amount": 10820,
                "currency": "usd",
                "client_secret": "pi_1_secret",
                "customer": "cus_1",
                "transfer_data": {"destination": "acct_1", "amount": 10000},
                "metadata": {"booking_id": "b1"},
            }
        )
        processor = _processor(payment_intents={"create": recorder})

        intent = processor.create_payment_intent(
            amount=10820,
            currency="usd",
            customer="cus_1",
            destination="acct_1",
            transfer_amount=10000,
            metadata={"booking_id": "b1"},
        )

        params = recorder.calls[0]["params"]
        assert params["capture_method"] == "manual"
        assert params["transfer_data"] == {"destination": "acct_1", "amount": 10000}
        assert params["automatic_payment_methods"] == {"enabled": True}
        assert "confirm" not in params
        assert recorder.calls[0]["options"] == {}
        assert intent.transfer_destination == "acct_1"
        assert intent.transfer_amount == 10000
        assert intent.metadata == {"booking_id": "b1"}

    def test_saved_card_is_confirmed_off_session(self) -> None:
        recorder = _Recorder({"id": "pi_1", "status": "requires_capture", "amount": 100})
        processor = _processor(payment_intents={"create": recorder})

        processor.create_payment_intent(
            amount=100,
            currency="usd",
            customer="cus_1",
            destination="acct_1",
            transfer_amount=50,
            metadata={},
            payment_method="pm_1",
            idempotency_key="booking-1",
        )

        call = recorder.calls[0]
        assert call["params"]["payment_method"] == "pm_1"
        assert call["params"]["confirm"] is True
        assert call["params"]["off_session"] is True
        assert "automatic_payment_methods" not in call["params"]
        assert call["options"] == {"idempotency_key": "booking-1"}

    def test_capture_passes_idempotency_key_as_request_option(self) -> None:
        recorder = _Recorder({"id": "pi_1", "status": "succeeded", "amount": 100})
        processor = _processor(payment_intents={"capture": recorder})

        captured = processor.capture_payment_intent("pi_1", idempotency_key="capture-b1")

        assert recorder.calls[0]["args"] == ("pi_1",)
        assert recorder.calls[0]["options"] == {"idempotency_key": "capture-b1"}
        assert captured.status == "succeeded"

    def test_settlement_reads_expanded_balance_transaction(self) -> None:
        recorder = _Recorder(
            {
                "id": "pi_1",
                "latest_charge": {
                    "id": "ch_1",
                    "amount": 10820,
                    "balance_transaction": {"id": "txn_1", "fee": 344, "net": 10476},
                },
            }
        )
        processor = _processor(payment_intents={"retrieve": recorder})

        settlement = processor.retrieve_settlement("pi_1")

        assert recorder.calls[0]["params"] == {"expand": ["latest_charge.balance_transaction"]}
        assert settlement is not None
        assert (settlement.charge_id, settlement.fee, settlement.net) == ("ch_1", 344, 10476)

    def test_settlement_follows_unexpanded_references(self) -> None:
        charges = _Recorder({"id": "ch_1", "amount": 10820, "balance_transaction": "txn_1"})
        balance_transactions = _Recorder({"id": "txn_1", "fee": 344, "net": 10476})
        processor = _processor(
            payment_intents={"retrieve": _Recorder({"id": "pi_1", "latest_charge": "ch_1"})},
            charges={"retrieve": charges},
            balance_transactions={"retrieve": balance_transactions},
        )

        settlement = processor.retrieve_settlement("pi_1")

        assert charges.calls[0]["args"] == ("ch_1",)
        assert balance_transactions.calls[0]["args"] == ("txn_1",)
        assert settlement is not None
        assert settlement.fee == 344

    def test_uncaptured_intent_has_no_settlement(self) -> None:
        processor = _processor(
            payment_intents={"retrieve": _Recorder({"id": "pi_1", "latest_charge": None})}
        )

        assert processor.retrieve_settlement("pi_1") is None

    def test_sdk_errors_are_translated(self) -> None:
        processor = _processor(
            customers={
                "retrieve": _Recorder(
                    error=stripe.InvalidRequestError(
                        "No such customer: 'cus_1'; a similar object exists in test mode, "
                        "but a live mode key was used to make this request.",
                        None,
                        code="resource_missing",
                        http_status=400,
                    )
                )
            }
        )

        with pytest.raises(ProcessorModeMismatchError):
            processor.retrieve_customer("cus_1")
