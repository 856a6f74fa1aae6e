"""
Shared fixtures: a per-test in-memory database, the fake processor and
pre-wired services.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Generator, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from borkin.core.enums import PaymentEnvironment
from borkin.database import Base
from borkin.models.booking import Booking
from borkin.models.profiles import ClientProfile, ContractorProfile
from borkin.services.booking_payment_service import BookingPaymentService
from borkin.services.fee_calculator import DEFAULT_FEE_SCHEDULE
from borkin.services.payment_account_service import PaymentAccountService
from borkin.services.payment_history_service import PaymentHistoryService
from borkin.services.payment_intent_service import PaymentIntentService
from tests.helpers.fake_payment_processor import FakePaymentProcessor

APP_URL = "https://borkin.test"


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    import borkin.models  # noqa: F401

    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Generator[Session, None, None]:
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def processor() -> FakePaymentProcessor:
    return FakePaymentProcessor()


@pytest.fixture
def account_service(db: Session, processor: FakePaymentProcessor) -> PaymentAccountService:
    return PaymentAccountService(
        db, processor=processor, environment=PaymentEnvironment.TEST, app_url=APP_URL
    )


@pytest.fixture
def intent_service(
    db: Session, processor: FakePaymentProcessor, account_service: PaymentAccountService
) -> PaymentIntentService:
    return PaymentIntentService(
        db,
        processor=processor,
        account_service=account_service,
        fee_schedule=DEFAULT_FEE_SCHEDULE,
        environment=PaymentEnvironment.TEST,
    )


@pytest.fixture
def booking_service(
    db: Session,
    intent_service: PaymentIntentService,
    account_service: PaymentAccountService,
) -> BookingPaymentService:
    return BookingPaymentService(
        db,
        intent_service=intent_service,
        account_service=account_service,
        fee_schedule=DEFAULT_FEE_SCHEDULE,
    )


@pytest.fixture
def history_service(
    db: Session, processor: FakePaymentProcessor, account_service: PaymentAccountService
) -> PaymentHistoryService:
    return PaymentHistoryService(
        db, processor=processor, account_service=account_service, app_url=APP_URL
    )


@pytest.fixture
def make_contractor(
    db: Session, processor: FakePaymentProcessor
) -> Callable[..., ContractorProfile]:
    counter = {"n": 0}

    def _make(
        *,
        account_id: Optional[str] = None,
        mode: Optional[str] = "test",
        onboarded: bool = True,
        register_account: bool = True,
    ) -> ContractorProfile:
        counter["n"] += 1
        contractor = ContractorProfile(
            id=f"contractor-{counter['n']}",
            name="Dana Walker",
            email=f"walker{counter['n']}@example.com",
        )
        if account_id:
            contractor.stripe_account_id = account_id
            contractor.stripe_account_mode = mode
            if register_account:
                processor.add_account(account_id, details_submitted=onboarded)
        db.add(contractor)
        db.commit()
        return contractor

    return _make


@pytest.fixture
def make_client(db: Session, processor: FakePaymentProcessor) -> Callable[..., ClientProfile]:
    counter = {"n": 0}

    def _make(
        *,
        customer_id: Optional[str] = None,
        mode: Optional[str] = "test",
        register_customer: bool = True,
    ) -> ClientProfile:
        counter["n"] += 1
        client = ClientProfile(
            id=f"client-{counter['n']}",
            name="Pat Owner",
            email=f"owner{counter['n']}@example.com",
        )
        if customer_id:
            client.stripe_customer_id = customer_id
            client.stripe_customer_mode = mode
            if register_customer:
                processor.add_customer(customer_id)
        db.add(client)
        db.commit()
        return client

    return _make


@pytest.fixture
def make_booking(db: Session) -> Callable[..., Booking]:
    def _make(
        client: ClientProfile,
        contractor: ContractorProfile,
        *,
        payment_amount: Any = "100.00",
        base_service_amount: Any = None,
        **fields: Any,
    ) -> Booking:
        booking = Booking(
            client_id=client.id,
            contractor_id=contractor.id,
            payment_amount=Decimal(str(payment_amount)),
            base_service_amount=(
                Decimal(str(base_service_amount)) if base_service_amount is not None else None
            ),
            **fields,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def ready_parties(
    make_client: Callable[..., ClientProfile], make_contractor: Callable[..., ContractorProfile]
) -> tuple[ClientProfile, ContractorProfile]:
    """A client with a customer and a fully onboarded contractor."""
    return make_client(customer_id="cus_ready"), make_contractor(account_id="acct_ready")
