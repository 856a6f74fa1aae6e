# backend/borkin/services/payment_account_service.py
"""
Provisioning of processor-side accounts for contractors and clients.

Contractors receive transfers through an Express connected account; clients
pay through a processor customer. Both identifiers are bound to the
environment (test or live) of the key that created them, so a stored
identifier is only reused after it has been retrieved successfully under the
current environment. Anything else is discarded and re-created, and the new
identifier is persisted together with its environment tag.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import PaymentEnvironment
from ..core.exceptions import (
    ClientNotFoundException,
    ContractorNotFoundException,
    NoPayoutAccountException,
)
from ..integrations.payment_processor import (
    AccountRecord,
    CustomerRecord,
    PaymentProcessor,
    ProcessorModeMismatchError,
)
from ..models.profiles import ClientProfile, ContractorProfile
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

CONTRACTOR_PAYMENTS_PATH = "/dashboard/contractor/payments"


class PaymentAccountService(BaseService):
    """Ensures contractors and clients hold processor objects valid in this environment."""

    def __init__(
        self,
        db: Session,
        *,
        processor: PaymentProcessor,
        environment: PaymentEnvironment,
        app_url: str = "http://localhost:3000",
    ):
        super().__init__(db)
        self.processor = processor
        self.environment = environment
        self.app_url = app_url.rstrip("/")
        self.contractor_repository = RepositoryFactory.create_contractor_profile_repository(db)
        self.client_repository = RepositoryFactory.create_client_profile_repository(db)

    # ------------------------------------------------------------------ #
    # Contractor payout accounts
    # ------------------------------------------------------------------ #

    def _get_contractor(self, contractor_id: str) -> ContractorProfile:
        contractor = self.contractor_repository.get_by_id(contractor_id)
        if not contractor:
            raise ContractorNotFoundException(contractor_id)
        return contractor

    def _reusable_account(self, contractor: ContractorProfile) -> Optional[AccountRecord]:
        stored_id = contractor.stripe_account_id
        if not stored_id:
            return None
        if contractor.stripe_account_mode and contractor.stripe_account_mode != self.environment.value:
            self.logger.warning(
                "Discarding %s-mode payout account %s for contractor %s (environment=%s)",
                contractor.stripe_account_mode,
                stored_id,
                contractor.id,
                self.environment.value,
            )
            return None
        try:
            return self.processor.retrieve_account(stored_id)
        except ProcessorModeMismatchError:
            self.logger.warning(
                "Payout account %s for contractor %s belongs to the other environment; re-provisioning",
                stored_id,
                contractor.id,
            )
            return None

    def _provision_account(self, contractor: ContractorProfile) -> AccountRecord:
        account = self.processor.create_express_account(
            email=contractor.email,
            metadata={"contractor_id": contractor.id, "mode": self.environment.value},
        )
        with self.transaction():
            self.contractor_repository.set_payout_account(contractor, account.id, self.environment)
        prometheus_metrics.record_payment_event("payout_account_created")
        self.logger.info(
            f"Created {self.environment.value} payout account {account.id} for contractor {contractor.id}"
        )
        return account

    @BaseService.measure_operation("ensure_contractor_payout_account")
    def ensure_contractor_payout_account(self, contractor_id: str) -> Tuple[AccountRecord, bool]:
        """
        Return the contractor's payout account, creating one when needed.

        Returns:
            (account, created) where ``created`` is True when a new account was provisioned
        """
        contractor = self._get_contractor(contractor_id)
        account = self._reusable_account(contractor)
        if account is not None:
            return account, False
        return self._provision_account(contractor), True

    @BaseService.measure_operation("resolve_transfer_destination")
    def resolve_transfer_destination(self, contractor_id: str) -> str:
        """
        Account id that transfers for this contractor should be routed to.

        Raises:
            ContractorNotFoundException: Unknown contractor
            NoPayoutAccountException: No account yet, or the account cannot receive
                transfers until onboarding is finished
        """
        contractor = self._get_contractor(contractor_id)
        if not contractor.stripe_account_id:
            raise NoPayoutAccountException(contractor_id, details={"onboarding_required": True})

        account = self._reusable_account(contractor)
        if account is None:
            fresh = self._provision_account(contractor)
            raise NoPayoutAccountException(
                contractor_id,
                message="Payout account was re-created for the current environment; onboarding required",
                details={"onboarding_required": True, "account_id": fresh.id},
            )
        if not account.details_submitted:
            raise NoPayoutAccountException(
                contractor_id,
                details={"onboarding_required": True, "account_id": account.id},
            )
        return account.id

    @BaseService.measure_operation("create_onboarding_link")
    def create_onboarding_link(
        self,
        contractor_id: str,
        *,
        refresh_url: Optional[str] = None,
        return_url: Optional[str] = None,
    ) -> str:
        account, _ = self.ensure_contractor_payout_account(contractor_id)
        default_url = f"{self.app_url}{CONTRACTOR_PAYMENTS_PATH}"
        return self.processor.create_account_link(
            account.id,
            refresh_url=refresh_url or default_url,
            return_url=return_url or default_url,
        )

    # ------------------------------------------------------------------ #
    # Client payment customers
    # ------------------------------------------------------------------ #

    def _reusable_customer(self, client: ClientProfile) -> Optional[CustomerRecord]:
        stored_id = client.stripe_customer_id
        if not stored_id:
            return None
        if client.stripe_customer_mode and client.stripe_customer_mode != self.environment.value:
            self.logger.warning(
                "Discarding %s-mode customer %s for client %s (environment=%s)",
                client.stripe_customer_mode,
                stored_id,
                client.id,
                self.environment.value,
            )
            return None
        try:
            customer = self.processor.retrieve_customer(stored_id)
        except ProcessorModeMismatchError:
            self.logger.warning(
                "Customer %s for client %s belongs to the other environment; re-provisioning",
                stored_id,
                client.id,
            )
            return None
        if customer.deleted:
            self.logger.info("Customer %s for client %s was deleted upstream", stored_id, client.id)
            return None
        return customer

    @BaseService.measure_operation("ensure_client_customer")
    def ensure_client_customer(self, client_id: str) -> Tuple[CustomerRecord, bool]:
        client = self.client_repository.get_by_id(client_id)
        if not client:
            raise ClientNotFoundException(client_id)

        customer = self._reusable_customer(client)
        if customer is not None:
            return customer, False

        customer = self.processor.create_customer(
            email=client.email,
            name=client.name,
            metadata={"client_id": client.id, "mode": self.environment.value},
        )
        with self.transaction():
            self.client_repository.set_customer(client, customer.id, self.environment)
        prometheus_metrics.record_payment_event("customer_created")
        self.logger.info(
            f"Created {self.environment.value} customer {customer.id} for client {client.id}"
        )
        return customer, True

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("purge_mismatched_references")
    def purge_mismatched_references(self) -> Dict[str, object]:
        """Clear stored processor ids tagged with the other environment."""
        with self.transaction():
            contractors = self.contractor_repository.get_with_foreign_mode_accounts(self.environment)
            for contractor in contractors:
                self.logger.info(
                    "Clearing %s-mode payout account from contractor %s",
                    contractor.stripe_account_mode,
                    contractor.id,
                )
                self.contractor_repository.clear_payout_account(contractor)

            clients = self.client_repository.get_with_foreign_mode_customers(self.environment)
            for client in clients:
                self.logger.info(
                    "Clearing %s-mode customer from client %s",
                    client.stripe_customer_mode,
                    client.id,
                )
                self.client_repository.clear_customer(client)

        return {
            "current_mode": self.environment.value,
            "cleaned_contractors": len(contractors),
            "cleaned_clients": len(clients),
        }
