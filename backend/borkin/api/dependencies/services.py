# backend/borkin/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. The payment environment
and fee schedule are resolved once from settings and handed to every service.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.enums import PaymentEnvironment
from ...core.exceptions import ServiceException
from ...integrations.identity_provider import IdentityProviderClient
from ...integrations.payment_processor import PaymentProcessor, StripePaymentProcessor
from ...services.account_removal_service import AccountRemovalService
from ...services.booking_payment_service import BookingPaymentService
from ...services.fee_calculator import FeeSchedule
from ...services.payment_account_service import PaymentAccountService
from ...services.payment_history_service import PaymentHistoryService
from ...services.payment_intent_service import PaymentIntentService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _stripe_processor_singleton() -> StripePaymentProcessor:
    logger.info("Configuring Stripe processor (mode=%s)", settings.payment_environment.value)
    return StripePaymentProcessor(
        settings.stripe_secret_key, timeout_seconds=settings.stripe_timeout_seconds
    )


def get_payment_processor() -> PaymentProcessor:
    """Get the processor client; fails loudly when no secret key is configured."""
    if not settings.stripe_secret_key.get_secret_value():
        raise ServiceException(
            "Stripe service not configured. Please check STRIPE_SECRET_KEY environment variable.",
            code="STRIPE_NOT_CONFIGURED",
        )
    return _stripe_processor_singleton()


def get_payment_environment() -> PaymentEnvironment:
    return settings.payment_environment


@lru_cache(maxsize=1)
def get_fee_schedule() -> FeeSchedule:
    return FeeSchedule.from_settings(settings)


def get_identity_provider_client() -> IdentityProviderClient:
    return IdentityProviderClient(
        secret_key=settings.identity_provider_secret_key,
        base_url=settings.identity_provider_api_url,
        timeout=settings.identity_provider_timeout_seconds,
    )


def get_payment_account_service(
    db: Session = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
    environment: PaymentEnvironment = Depends(get_payment_environment),
) -> PaymentAccountService:
    return PaymentAccountService(
        db, processor=processor, environment=environment, app_url=settings.app_url
    )


def get_payment_intent_service(
    db: Session = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
    account_service: PaymentAccountService = Depends(get_payment_account_service),
    fee_schedule: FeeSchedule = Depends(get_fee_schedule),
    environment: PaymentEnvironment = Depends(get_payment_environment),
) -> PaymentIntentService:
    return PaymentIntentService(
        db,
        processor=processor,
        account_service=account_service,
        fee_schedule=fee_schedule,
        environment=environment,
    )


def get_booking_payment_service(
    db: Session = Depends(get_db),
    intent_service: PaymentIntentService = Depends(get_payment_intent_service),
    account_service: PaymentAccountService = Depends(get_payment_account_service),
    fee_schedule: FeeSchedule = Depends(get_fee_schedule),
) -> BookingPaymentService:
    return BookingPaymentService(
        db,
        intent_service=intent_service,
        account_service=account_service,
        fee_schedule=fee_schedule,
        currency=settings.stripe_currency,
    )


def get_payment_history_service(
    db: Session = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
    account_service: PaymentAccountService = Depends(get_payment_account_service),
) -> PaymentHistoryService:
    return PaymentHistoryService(
        db, processor=processor, account_service=account_service, app_url=settings.app_url
    )


def get_account_removal_service(
    db: Session = Depends(get_db),
    identity_client: IdentityProviderClient = Depends(get_identity_provider_client),
) -> AccountRemovalService:
    return AccountRemovalService(db, identity_client=identity_client)
