"""
Database models for the Borkin platform.

- Booking: one engagement between a client and a contractor
- ClientProfile / ContractorProfile: profile documents holding processor references
- BannedAccount: admin ban ledger
"""

from .banned_account import BannedAccount
from .booking import Booking
from .profiles import ClientProfile, ContractorProfile

__all__ = [
    "BannedAccount",
    "Booking",
    "ClientProfile",
    "ContractorProfile",
]
