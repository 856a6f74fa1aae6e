"""Repository layer for the Borkin platform."""

from .banned_account_repository import BannedAccountRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .profile_repository import ClientProfileRepository, ContractorProfileRepository

__all__ = [
    "BannedAccountRepository",
    "BaseRepository",
    "BookingRepository",
    "ClientProfileRepository",
    "ContractorProfileRepository",
    "RepositoryFactory",
]
