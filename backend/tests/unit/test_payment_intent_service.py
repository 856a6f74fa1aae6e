import pytest

from borkin.core.exceptions import (
    AlreadyCapturedException,
    ContractorNotFoundException,
    FeeComputationException,
    NoPayoutAccountException,
    NotReadyForCaptureException,
    ValidationException,
)
from borkin.integrations.payment_processor import PaymentIntentStateError, PaymentProcessorError


@pytest.fixture
def contractor(make_contractor):
    return make_contractor(account_id="acct_walker")


class TestCreatePaymentIntent:
    def test_routes_base_amount_to_payout_account(self, intent_service, processor, contractor) -> None:
        result = intent_service.create_payment_intent(10820, "usd", "cus_1", contractor.id, 10000)

        call = processor.calls_to("create_payment_intent")[0]
        assert call["amount"] == 10820
        assert call["destination"] == "acct_walker"
        assert call["transfer_amount"] == 10000
        assert call["metadata"]["contractor_id"] == contractor.id
        assert call["metadata"]["mode"] == "test"
        assert call["metadata"]["fee_structure"] == "fees_on_top"
        assert result.client_secret == f"{result.intent_id}_secret"
        assert result.replaced is False
        assert result.fees.platform_fee_cents == 500

    def test_payment_method_confirms_off_session(self, intent_service, contractor) -> None:
        result = intent_service.create_payment_intent(
            10000, "usd", "cus_1", contractor.id, payment_method_id="pm_card"
        )

        assert result.status == "requires_capture"

    def test_missing_fields_fail_before_any_processor_call(self, intent_service, processor) -> None:
        with pytest.raises(ValidationException) as exc:
            intent_service.create_payment_intent(10000, "usd", "", "")

        assert exc.value.details["missing"] == ["customer_id", "contractor_id"]
        assert processor.calls == []

    @pytest.mark.parametrize("amount, base", [(30, None), (30, 0)])
    def test_non_positive_transfer_issues_no_processor_call(
        self, intent_service, processor, contractor, amount, base
    ) -> None:
        with pytest.raises(FeeComputationException):
            intent_service.create_payment_intent(amount, "usd", "cus_1", contractor.id, base)

        assert processor.calls == []

    def test_unknown_contractor(self, intent_service) -> None:
        with pytest.raises(ContractorNotFoundException):
            intent_service.create_payment_intent(10000, "usd", "cus_1", "nobody")

    def test_contractor_without_payout_account(self, intent_service, processor, make_contractor) -> None:
        bare = make_contractor()

        with pytest.raises(NoPayoutAccountException) as exc:
            intent_service.create_payment_intent(10000, "usd", "cus_1", bare.id)

        assert exc.value.details["onboarding_required"] is True
        assert processor.calls_to("create_payment_intent") == []

    def test_contractor_mid_onboarding(self, intent_service, make_contractor) -> None:
        pending = make_contractor(account_id="acct_pending", onboarded=False)

        with pytest.raises(NoPayoutAccountException) as exc:
            intent_service.create_payment_intent(10000, "usd", "cus_1", pending.id)

        assert exc.value.details["account_id"] == "acct_pending"

    def test_processor_error_is_surfaced_verbatim(self, intent_service, processor, contractor) -> None:
        processor.fail_next["create_payment_intent"] = PaymentProcessorError(
            "Your card was declined.", http_status=402, processor_code="card_declined"
        )

        with pytest.raises(PaymentProcessorError) as exc:
            intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id)

        assert exc.value.http_status == 402
        assert exc.value.processor_code == "card_declined"
        assert exc.value.message == "Your card was declined."


class TestUpdatePaymentIntent:
    def test_unauthorized_intent_is_updated_in_place(self, intent_service, processor, contractor) -> None:
        created = intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id)
        assert created.status == "requires_payment_method"

        result = intent_service.update_payment_intent(
            created.intent_id, 12000, "usd", "cus_1", contractor.id
        )

        assert result.intent_id == created.intent_id
        assert result.replaced is False
        assert processor.intents[created.intent_id].amount == 12000
        assert processor.calls_to("cancel_payment_intent") == []
        assert len(processor.calls_to("create_payment_intent")) == 1

    def test_requires_confirmation_keeps_intent_and_takes_new_amount(
        self, intent_service, processor, contractor
    ) -> None:
        created = intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id, 10000)
        processor.set_status(created.intent_id, "requires_confirmation")

        result = intent_service.update_payment_intent(
            created.intent_id, 15000, "usd", "cus_1", contractor.id, 15000
        )

        intent = processor.intents[created.intent_id]
        assert result.intent_id == created.intent_id
        assert result.replaced is False
        assert intent.amount == 15000
        assert intent.transfer_amount == 15000

    def test_authorized_intent_is_canceled_and_replaced(self, intent_service, processor, contractor) -> None:
        created = intent_service.create_payment_intent(
            10000, "usd", "cus_1", contractor.id, payment_method_id="pm_card"
        )
        assert created.status == "requires_capture"

        result = intent_service.update_payment_intent(
            created.intent_id, 15000, "usd", "cus_1", contractor.id, payment_method_id="pm_card"
        )

        assert result.replaced is True
        assert result.intent_id != created.intent_id
        assert processor.intents[created.intent_id].status == "canceled"
        assert processor.intents[result.intent_id].amount == 15000
        assert (
            processor.intents[result.intent_id].metadata["replaces_payment_intent"]
            == created.intent_id
        )
        active = [pi for pi in processor.intents.values() if pi.status != "canceled"]
        assert [pi.id for pi in active] == [result.intent_id]

    def test_predecessor_is_canceled_before_successor_is_created(
        self, intent_service, processor, contractor
    ) -> None:
        created = intent_service.create_payment_intent(
            10000, "usd", "cus_1", contractor.id, payment_method_id="pm_card"
        )
        processor.calls.clear()

        intent_service.update_payment_intent(created.intent_id, 9000, "usd", "cus_1", contractor.id)

        names = [name for name, _ in processor.calls]
        assert names.index("cancel_payment_intent") < names.index("create_payment_intent")

    def test_authorized_intent_with_same_amount_is_left_alone(
        self, intent_service, processor, contractor
    ) -> None:
        created = intent_service.create_payment_intent(
            10000, "usd", "cus_1", contractor.id, payment_method_id="pm_card"
        )

        result = intent_service.update_payment_intent(
            created.intent_id, 10000, "usd", "cus_1", contractor.id
        )

        assert result.intent_id == created.intent_id
        assert result.replaced is False
        assert processor.intents[created.intent_id].status == "requires_capture"

    def test_canceled_intent_is_replaced_without_second_cancel(
        self, intent_service, processor, contractor
    ) -> None:
        created = intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id)
        processor.set_status(created.intent_id, "canceled")

        result = intent_service.update_payment_intent(
            created.intent_id, 11000, "usd", "cus_1", contractor.id
        )

        assert result.replaced is True
        assert processor.calls_to("cancel_payment_intent") == []

    def test_captured_intent_is_never_replaced(self, intent_service, processor, contractor) -> None:
        created = intent_service.create_payment_intent(
            10000, "usd", "cus_1", contractor.id, payment_method_id="pm_card"
        )
        intent_service.capture_payment_intent(created.intent_id)

        with pytest.raises(AlreadyCapturedException) as exc:
            intent_service.update_payment_intent(
                created.intent_id, 15000, "usd", "cus_1", contractor.id, payment_method_id="pm_card"
            )

        assert exc.value.details["status"] == "succeeded"
        assert len(processor.intents) == 1
        assert processor.calls_to("cancel_payment_intent") == []

    def test_non_positive_transfer_issues_no_processor_call(
        self, intent_service, processor, contractor
    ) -> None:
        created = intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id)
        processor.calls.clear()

        with pytest.raises(FeeComputationException):
            intent_service.update_payment_intent(created.intent_id, 30, "usd", "cus_1", contractor.id)

        assert processor.calls == []


class TestCancelPaymentIntent:
    def test_cancel(self, intent_service, processor, contractor) -> None:
        created = intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id)

        assert intent_service.cancel_payment_intent(created.intent_id) == "canceled"
        assert processor.intents[created.intent_id].status == "canceled"

    def test_cancel_is_idempotent(self, intent_service, contractor) -> None:
        created = intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id)
        intent_service.cancel_payment_intent(created.intent_id)

        assert intent_service.cancel_payment_intent(created.intent_id) == "canceled"

    def test_cannot_cancel_captured_intent(self, intent_service, processor, contractor) -> None:
        created = intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id)
        processor.set_status(created.intent_id, "succeeded")

        with pytest.raises(PaymentIntentStateError) as exc:
            intent_service.cancel_payment_intent(created.intent_id)

        assert exc.value.current_status == "succeeded"


class TestCapturePaymentIntent:
    def test_second_capture_is_reported_as_already_captured(
        self, intent_service, contractor
    ) -> None:
        created = intent_service.create_payment_intent(
            10000, "usd", "cus_1", contractor.id, payment_method_id="pm_card"
        )
        intent_service.capture_payment_intent(created.intent_id)

        with pytest.raises(AlreadyCapturedException) as exc:
            intent_service.capture_payment_intent(created.intent_id)

        assert exc.value.details["status"] == "succeeded"

    def test_unauthorized_intent_is_not_ready(self, intent_service, contractor) -> None:
        created = intent_service.create_payment_intent(10000, "usd", "cus_1", contractor.id)

        with pytest.raises(NotReadyForCaptureException) as exc:
            intent_service.capture_payment_intent(created.intent_id)

        assert exc.value.details["status"] == "requires_payment_method"
