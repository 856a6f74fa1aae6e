import pytest
from sqlalchemy.exc import OperationalError

from borkin.core.exceptions import ServiceException
from borkin.models.banned_account import BannedAccount
from borkin.services.base import BaseService


class LedgerService(BaseService):
    @BaseService.measure_operation("ban")
    def ban(self, user_id: str, fail: bool = False) -> None:
        with self.transaction():
            self.db.add(BannedAccount(user_id=user_id, role="client"))
            self.db.flush()
            if fail:
                raise ValueError("rejected")

    @BaseService.measure_operation("broken_query")
    def broken_query(self) -> None:
        with self.transaction():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))


@pytest.fixture(autouse=True)
def _reset_class_metrics():
    BaseService._class_metrics.pop(LedgerService.__name__, None)
    yield
    BaseService._class_metrics.pop(LedgerService.__name__, None)


class TestTransaction:
    def test_commits_on_success(self, db) -> None:
        LedgerService(db).ban("user_1")

        assert db.query(BannedAccount).count() == 1

    def test_rolls_back_and_reraises_domain_errors(self, db) -> None:
        with pytest.raises(ValueError):
            LedgerService(db).ban("user_1", fail=True)

        assert db.query(BannedAccount).count() == 0

    def test_database_errors_become_service_exceptions(self, db) -> None:
        with pytest.raises(ServiceException) as exc:
            LedgerService(db).broken_query()

        assert "database is locked" in exc.value.message


def test_measure_operation_tracks_outcomes(db) -> None:
    service = LedgerService(db)
    service.ban("user_1")
    with pytest.raises(ValueError):
        service.ban("user_2", fail=True)

    metrics = service.get_metrics()["ban"]

    assert metrics["count"] == 2
    assert metrics["failure_count"] == 1
    assert metrics["success_rate"] == 0.5
    assert LedgerService.ban._operation_name == "ban"
