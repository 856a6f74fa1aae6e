# backend/borkin/repositories/factory.py
"""
Repository Factory for the Borkin platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .banned_account_repository import BannedAccountRepository
    from .booking_repository import BookingRepository
    from .profile_repository import ClientProfileRepository, ContractorProfileRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_contractor_profile_repository(db: Session) -> "ContractorProfileRepository":
        from .profile_repository import ContractorProfileRepository

        return ContractorProfileRepository(db)

    @staticmethod
    def create_client_profile_repository(db: Session) -> "ClientProfileRepository":
        from .profile_repository import ClientProfileRepository

        return ClientProfileRepository(db)

    @staticmethod
    def create_banned_account_repository(db: Session) -> "BannedAccountRepository":
        from .banned_account_repository import BannedAccountRepository

        return BannedAccountRepository(db)
