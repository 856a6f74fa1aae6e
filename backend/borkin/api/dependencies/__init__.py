# backend/borkin/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .admin import require_admin_email
from .database import get_db
from .services import (
    get_account_removal_service,
    get_booking_payment_service,
    get_fee_schedule,
    get_identity_provider_client,
    get_payment_account_service,
    get_payment_environment,
    get_payment_history_service,
    get_payment_intent_service,
    get_payment_processor,
)

__all__ = [
    # Admin
    "require_admin_email",
    # Database
    "get_db",
    # Services
    "get_account_removal_service",
    "get_booking_payment_service",
    "get_fee_schedule",
    "get_identity_provider_client",
    "get_payment_account_service",
    "get_payment_environment",
    "get_payment_history_service",
    "get_payment_intent_service",
    "get_payment_processor",
]
