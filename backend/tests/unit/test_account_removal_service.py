from typing import List

import httpx
import pytest

from borkin.core.enums import AccountRole
from borkin.core.exceptions import ValidationException
from borkin.integrations.identity_provider import IdentityProviderClient
from borkin.models.banned_account import BannedAccount
from borkin.models.profiles import ContractorProfile
from borkin.services.account_removal_service import AccountRemovalService


class IdentityProviderStub:
    """Records requests and answers them like the Clerk backend API."""

    def __init__(self, *, delete_status: int = 200, users: List[dict] | None = None) -> None:
        self.delete_status = delete_status
        self.users = users or []
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET" and request.url.path == "/v1/users":
            return httpx.Response(200, json=self.users)
        if request.method == "DELETE":
            if self.delete_status >= 400:
                return httpx.Response(self.delete_status, json={"errors": [{"message": "boom"}]})
            return httpx.Response(200, json={"deleted": True})
        return httpx.Response(404)


def _service(db, stub: IdentityProviderStub, secret: str = "sk_test_clerk") -> AccountRemovalService:
    client = IdentityProviderClient(
        secret_key=secret,
        base_url="https://clerk.test/v1",
        transport=httpx.MockTransport(stub),
    )
    return AccountRemovalService(db, identity_client=client)


class TestRemoveContractor:
    def test_bans_removes_profile_and_deletes_identity_user(self, db, make_contractor) -> None:
        stub = IdentityProviderStub()
        contractor = make_contractor()

        result = _service(db, stub).remove_contractor(
            contractor_id=contractor.id,
            identity_user_id="user_123",
            reason="Fraud",
            admin_email="admin@example.com",
        )

        assert result.user_id == "user_123"
        assert result.profile_removed is True
        assert result.identity_user_deleted is True
        assert result.warning is None
        assert db.get(ContractorProfile, contractor.id) is None
        ban = db.query(BannedAccount).one()
        assert (ban.user_id, ban.email, ban.role) == ("user_123", contractor.email, "contractor")
        assert ban.banned_by_email == "admin@example.com"
        assert stub.requests[-1].method == "DELETE"
        assert stub.requests[-1].url.path == "/v1/users/user_123"
        assert stub.requests[-1].headers["Authorization"] == "Bearer sk_test_clerk"

    def test_identity_failure_is_a_warning_not_an_error(self, db, make_contractor) -> None:
        stub = IdentityProviderStub(delete_status=500)
        contractor = make_contractor()

        result = _service(db, stub).remove_contractor(
            contractor_id=contractor.id, identity_user_id="user_123"
        )

        assert result.profile_removed is True
        assert result.identity_user_deleted is False
        assert result.warning is not None
        assert result.warning.message == "User banned, but failed to delete identity provider user."
        assert result.warning.step == "identity_provider_delete"
        assert result.warning.details["status_code"] == 500
        assert db.query(BannedAccount).count() == 1

    def test_looks_up_identity_user_by_email(self, db) -> None:
        stub = IdentityProviderStub(users=[{"id": "user_by_email"}])

        result = _service(db, stub).remove_contractor(email="walker@example.com")

        assert result.user_id == "walker@example.com"
        assert result.profile_removed is False
        assert result.identity_user_deleted is True
        assert stub.requests[0].url.params["email_address"] == "walker@example.com"
        assert stub.requests[1].url.path == "/v1/users/user_by_email"

    def test_removal_by_email_deletes_matching_profile(self, db, make_contractor) -> None:
        stub = IdentityProviderStub(users=[{"id": "user_by_email"}])
        contractor = make_contractor()
        other = make_contractor()

        result = _service(db, stub).remove_contractor(email=contractor.email)

        assert result.profile_removed is True
        assert db.get(ContractorProfile, contractor.id) is None
        assert db.get(ContractorProfile, other.id) is not None
        assert db.query(BannedAccount).one().email == contractor.email

    def test_unknown_identity_user_is_not_a_warning(self, db) -> None:
        result = _service(db, IdentityProviderStub()).remove_contractor(email="ghost@example.com")

        assert result.identity_user_deleted is False
        assert result.warning is None

    def test_unconfigured_identity_provider_warns(self, db, make_contractor) -> None:
        stub = IdentityProviderStub()
        contractor = make_contractor()

        result = _service(db, stub, secret="").remove_contractor(contractor_id=contractor.id)

        assert result.profile_removed is True
        assert result.warning is not None
        assert stub.requests == []

    def test_requires_id_or_email(self, db) -> None:
        with pytest.raises(ValidationException) as exc:
            _service(db, IdentityProviderStub()).remove_contractor()

        assert exc.value.code == "MISSING_FIELDS"
        assert db.query(BannedAccount).count() == 0


def test_remove_client(db, make_client) -> None:
    client = make_client()

    result = _service(db, IdentityProviderStub()).remove_client(
        client_id=client.id, identity_user_id="user_client"
    )

    assert result.role == AccountRole.CLIENT
    assert result.profile_removed is True
    assert db.query(BannedAccount).one().role == "client"


class TestBans:
    def test_unban_removes_matching_records(self, db) -> None:
        service = _service(db, IdentityProviderStub())
        service.remove_contractor(email="a@example.com", identity_user_id="user_a")
        service.remove_client(email="a@example.com", identity_user_id="user_a")

        removed = service.unban("contractor", email="a@example.com")

        assert removed == 1
        assert [b.role for b in service.list_banned(AccountRole.CLIENT)] == ["client"]
        assert service.list_banned("contractor") == []

    def test_unban_requires_identifier(self, db) -> None:
        with pytest.raises(ValidationException):
            _service(db, IdentityProviderStub()).unban("client")

    def test_invalid_role(self, db) -> None:
        with pytest.raises(ValidationException) as exc:
            _service(db, IdentityProviderStub()).list_banned("walker")

        assert exc.value.code == "INVALID_ROLE"
