"""
Profile repositories.

Processor references (payout account / payment customer) are always written
together with their environment tag and creation timestamp, and cleared
together.
"""

from datetime import datetime, timezone
import logging
from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from ..core.enums import PaymentEnvironment
from ..models.profiles import ClientProfile, ContractorProfile
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ContractorProfileRepository(BaseRepository[ContractorProfile]):
    def __init__(self, db: Session):
        super().__init__(db, ContractorProfile)

    def get_by_email(self, email: str) -> Optional[ContractorProfile]:
        return self.find_one_by(email=email)

    def set_payout_account(
        self,
        contractor: ContractorProfile,
        account_id: str,
        mode: PaymentEnvironment,
    ) -> ContractorProfile:
        return self.apply(
            contractor,
            stripe_account_id=account_id,
            stripe_account_mode=mode.value,
            stripe_account_created_at=datetime.now(timezone.utc),
        )

    def clear_payout_account(self, contractor: ContractorProfile) -> ContractorProfile:
        return self.apply(
            contractor,
            stripe_account_id=None,
            stripe_account_mode=None,
            stripe_account_created_at=None,
        )

    def get_with_foreign_mode_accounts(self, mode: PaymentEnvironment) -> List[ContractorProfile]:
        """Profiles holding an account tagged with an environment other than ``mode``."""
        return self._execute_query(
            self._build_query().filter(
                and_(
                    ContractorProfile.stripe_account_id.isnot(None),
                    ContractorProfile.stripe_account_mode.isnot(None),
                    ContractorProfile.stripe_account_mode != mode.value,
                )
            )
        )


class ClientProfileRepository(BaseRepository[ClientProfile]):
    def __init__(self, db: Session):
        super().__init__(db, ClientProfile)

    def get_by_email(self, email: str) -> Optional[ClientProfile]:
        return self.find_one_by(email=email)

    def set_customer(
        self,
        client: ClientProfile,
        customer_id: str,
        mode: PaymentEnvironment,
    ) -> ClientProfile:
        return self.apply(
            client,
            stripe_customer_id=customer_id,
            stripe_customer_mode=mode.value,
            stripe_customer_created_at=datetime.now(timezone.utc),
        )

    def clear_customer(self, client: ClientProfile) -> ClientProfile:
        return self.apply(
            client,
            stripe_customer_id=None,
            stripe_customer_mode=None,
            stripe_customer_created_at=None,
        )

    def get_with_foreign_mode_customers(self, mode: PaymentEnvironment) -> List[ClientProfile]:
        return self._execute_query(
            self._build_query().filter(
                and_(
                    ClientProfile.stripe_customer_id.isnot(None),
                    ClientProfile.stripe_customer_mode.isnot(None),
                    ClientProfile.stripe_customer_mode != mode.value,
                )
            )
        )
