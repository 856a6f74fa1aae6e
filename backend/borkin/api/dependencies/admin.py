# backend/borkin/api/dependencies/admin.py
"""
Admin allow-list guard.

Identity is established upstream; these routes only check that the acting
admin's email is on the configured allow-list.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

from ...core.config import settings


def require_admin_email(
    x_admin_email: Optional[str] = Header(default=None, alias="X-Admin-Email"),
) -> str:
    """Return the acting admin's email, rejecting anyone not on the allow-list."""
    if not x_admin_email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if x_admin_email.strip().lower() not in settings.admin_emails:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return x_admin_email.strip().lower()
