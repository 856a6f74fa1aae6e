from typing import Generator

from fastapi.testclient import TestClient
import httpx
from pydantic import SecretStr
import pytest
from sqlalchemy.orm import Session

from borkin.api.dependencies.database import get_db
from borkin.api.dependencies.services import (
    get_identity_provider_client,
    get_payment_environment,
    get_payment_processor,
)
from borkin.core.config import settings
from borkin.core.enums import PaymentEnvironment
from borkin.integrations.identity_provider import IdentityProviderClient
from borkin.integrations.payment_processor import SettlementRecord
from borkin.main import app

ADMIN_EMAIL = "ops@borkin.test"
UNKNOWN_BOOKING_ID = "01HF4G12ABCDEF3456789XYZAB"


def _failing_identity_provider(request: httpx.Request) -> httpx.Response:
    if request.method == "DELETE":
        return httpx.Response(503, json={"errors": [{"message": "unavailable"}]})
    return httpx.Response(200, json=[])


@pytest.fixture
def api(db: Session, processor, monkeypatch) -> Generator[TestClient, None, None]:
    monkeypatch.setattr(settings, "admin_emails_csv", ADMIN_EMAIL)
    monkeypatch.setattr(settings, "stripe_mode", "test")
    monkeypatch.setattr(settings, "stripe_secret_key", SecretStr(""))

    def _get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_processor] = lambda: processor
    app.dependency_overrides[get_payment_environment] = lambda: PaymentEnvironment.TEST
    app.dependency_overrides[get_identity_provider_client] = lambda: IdentityProviderClient(
        secret_key="sk_test_clerk",
        base_url="https://clerk.test/v1",
        transport=httpx.MockTransport(_failing_identity_provider),
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestBookingPaymentRoutes:
    def test_full_payment_lifecycle(self, api, processor, make_booking, ready_parties) -> None:
        client, contractor = ready_parties
        booking = make_booking(client, contractor, payment_amount="108.20", base_service_amount="100.00")
        base = f"/api/v1/bookings/{booking.id}"

        opened = api.post(f"{base}/payment", json={"payment_method_id": "pm_card"})
        assert opened.status_code == 200
        body = opened.json()
        assert body["replaced"] is False
        assert body["status"] == "requires_capture"
        assert body["fees"]["transfer_amount_cents"] == 10000

        assert api.post(f"{base}/complete", json={"party": "client"}).status_code == 200
        completed = api.post(f"{base}/complete", json={"party": "contractor"})
        assert completed.json()["contractor_completed"] is True
        assert completed.json()["client_completed"] is True

        processor.settlements[body["payment_intent_id"]] = SettlementRecord(
            charge_id="ch_1", amount=10820, fee=344
        )
        captured = api.post(f"{base}/capture")
        assert captured.status_code == 200
        assert captured.json() == {
            "success": True,
            "payment_intent_id": body["payment_intent_id"],
            "total_amount": 108.2,
            "platform_fee": 5.0,
            "stripe_fee": 3.44,
            "net_payout": 99.76,
            "fee_estimated": False,
        }

        again = api.post(f"{base}/capture")
        assert again.status_code == 409
        assert again.json()["code"] == "ALREADY_PAID"

    def test_capture_before_completion_is_a_problem_response(
        self, api, make_booking, ready_parties
    ) -> None:
        client, contractor = ready_parties
        booking = make_booking(client, contractor)

        response = api.post(f"/api/v1/bookings/{booking.id}/capture")

        assert response.status_code == 409
        assert response.headers["content-type"].startswith("application/problem+json")
        problem = response.json()
        assert problem["code"] == "COMPLETION_PENDING"
        assert problem["title"] == "Conflict"
        assert problem["instance"] == f"/api/v1/bookings/{booking.id}/capture"
        assert problem["errors"]["client_completed"] is False

    def test_reprice_conflict_is_retryable(self, api, make_booking, ready_parties) -> None:
        client, contractor = ready_parties
        booking = make_booking(client, contractor)
        api.post(f"/api/v1/bookings/{booking.id}/payment", json={})

        response = api.post(
            f"/api/v1/bookings/{booking.id}/reprice",
            json={"payment_amount": "150.00", "expected_payment_intent_id": "pi_other"},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "PAYMENT_INTENT_CONFLICT"
        assert response.json()["errors"]["retryable"] is True

    def test_unknown_booking(self, api) -> None:
        response = api.post(f"/api/v1/bookings/{UNKNOWN_BOOKING_ID}/capture")

        assert response.status_code == 404
        assert response.json()["code"] == "BOOKING_NOT_FOUND"

    def test_malformed_booking_id(self, api) -> None:
        response = api.post("/api/v1/bookings/not-a-ulid/capture")

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


class TestPaymentRoutes:
    def test_create_then_update_intent(self, api, processor, make_contractor) -> None:
        contractor = make_contractor(account_id="acct_route")

        created = api.post(
            "/api/v1/payments/intents",
            json={
                "amount_cents": 10000,
                "customer_id": "cus_route",
                "contractor_id": contractor.id,
            },
        ).json()
        updated = api.post(
            "/api/v1/payments/intents/update",
            json={
                "payment_intent_id": created["payment_intent_id"],
                "new_amount_cents": 15000,
                "customer_id": "cus_route",
                "contractor_id": contractor.id,
            },
        ).json()

        assert updated["payment_intent_id"] == created["payment_intent_id"]
        assert updated["replaced"] is False
        assert processor.intents[created["payment_intent_id"]].amount == 15000

    def test_contractor_without_payout_account(self, api, make_contractor) -> None:
        contractor = make_contractor()

        response = api.post(
            "/api/v1/payments/intents",
            json={"amount_cents": 10000, "customer_id": "cus_1", "contractor_id": contractor.id},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "NO_PAYOUT_ACCOUNT"

    def test_unknown_fields_are_rejected(self, api) -> None:
        response = api.post(
            "/api/v1/payments/intents/cancel",
            json={"payment_intent_id": "pi_1", "force": True},
        )

        assert response.status_code == 422

    def test_fee_quote(self, api) -> None:
        response = api.post("/api/v1/payments/fees/quote", json={"base_service_amount": "100.00"})

        assert response.status_code == 200
        assert response.json() == {
            "base_service_amount": 100.0,
            "platform_fee": 5.0,
            "processor_fee": 3.2,
            "client_total": 108.2,
            "transfer_amount": 100.0,
        }

    def test_missing_stripe_key(self, api, monkeypatch) -> None:
        del app.dependency_overrides[get_payment_processor]
        monkeypatch.setattr(settings, "stripe_secret_key", SecretStr(""))

        response = api.post("/api/v1/payments/intents/cancel", json={"payment_intent_id": "pi_1"})

        assert response.status_code == 500
        assert response.json()["code"] == "STRIPE_NOT_CONFIGURED"


class TestAdminRoutes:
    def test_requires_admin_header(self, api) -> None:
        assert api.get("/api/v1/admin/banned", params={"role": "client"}).status_code == 401
        forbidden = api.get(
            "/api/v1/admin/banned",
            params={"role": "client"},
            headers={"X-Admin-Email": "someone@example.com"},
        )
        assert forbidden.status_code == 403

    def test_removal_reports_identity_warning(self, api, make_contractor) -> None:
        contractor = make_contractor()
        headers = {"X-Admin-Email": ADMIN_EMAIL.upper()}

        response = api.post(
            "/api/v1/admin/remove-contractor",
            json={"contractor_id": contractor.id, "identity_user_id": "user_1", "reason": "spam"},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["profile_removed"] is True
        assert body["identity_user_deleted"] is False
        assert body["warning"] == "User banned, but failed to delete identity provider user."

        banned = api.get(
            "/api/v1/admin/banned", params={"role": "contractor"}, headers=headers
        ).json()["banned"]
        assert [(b["user_id"], b["banned_by_email"]) for b in banned] == [("user_1", ADMIN_EMAIL)]

        unbanned = api.post(
            "/api/v1/admin/unban",
            json={"role": "contractor", "user_id": "user_1"},
            headers=headers,
        )
        assert unbanned.json() == {"success": True, "removed": 1}

    def test_purge_payment_references(self, api, make_contractor) -> None:
        make_contractor(account_id="acct_live", mode="live")

        response = api.post(
            "/api/v1/admin/payment-references/purge", headers={"X-Admin-Email": ADMIN_EMAIL}
        )

        assert response.status_code == 200
        assert response.json()["cleaned_contractors"] == 1
        assert response.json()["current_mode"] == "test"


def test_health_and_metrics(api) -> None:
    health = api.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert health.json()["payment_mode"] == "test"

    metrics = api.get("/metrics")
    assert metrics.status_code == 200
    assert "borkin_payment_events" in metrics.text
