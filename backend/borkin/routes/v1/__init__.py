# backend/borkin/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import admin, bookings, payments

__all__ = [
    "admin",
    "bookings",
    "payments",
]
