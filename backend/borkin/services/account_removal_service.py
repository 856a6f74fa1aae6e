# backend/borkin/services/account_removal_service.py
"""
Admin removal and banning of contractors and clients.

The ban record is written first and is the only step that must succeed.
Removing the profile follows, and deleting the user at the identity provider
is best effort: when it fails the removal still succeeds and the caller gets
a ``PartialSuccessWarning`` describing what was left behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import AccountRole
from ..core.exceptions import RepositoryException, ServiceException, ValidationException
from ..integrations.identity_provider import IdentityProviderClient, IdentityProviderError
from ..models.banned_account import BannedAccount
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def _coerce_role(role: AccountRole | str) -> AccountRole:
    try:
        return AccountRole(role)
    except ValueError as exc:
        raise ValidationException(
            "role must be 'client' or 'contractor'",
            code="INVALID_ROLE",
            details={"role": str(role)},
        ) from exc


@dataclass(frozen=True)
class PartialSuccessWarning:
    """An auxiliary step failed after the primary action succeeded."""

    message: str
    step: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RemovalResult:
    user_id: str
    role: AccountRole
    profile_removed: bool
    identity_user_deleted: bool
    warning: Optional[PartialSuccessWarning] = None


class AccountRemovalService(BaseService):
    def __init__(self, db: Session, *, identity_client: IdentityProviderClient):
        super().__init__(db)
        self.identity_client = identity_client
        self.banned_repository = RepositoryFactory.create_banned_account_repository(db)
        self.contractor_repository = RepositoryFactory.create_contractor_profile_repository(db)
        self.client_repository = RepositoryFactory.create_client_profile_repository(db)

    def _profile_repository(self, role: AccountRole) -> Any:
        if role == AccountRole.CONTRACTOR:
            return self.contractor_repository
        return self.client_repository

    @BaseService.measure_operation("remove_contractor")
    def remove_contractor(
        self,
        *,
        contractor_id: Optional[str] = None,
        email: Optional[str] = None,
        identity_user_id: Optional[str] = None,
        reason: Optional[str] = None,
        admin_email: Optional[str] = None,
    ) -> RemovalResult:
        return self._remove(
            AccountRole.CONTRACTOR,
            profile_id=contractor_id,
            email=email,
            identity_user_id=identity_user_id,
            reason=reason,
            admin_email=admin_email,
        )

    @BaseService.measure_operation("remove_client")
    def remove_client(
        self,
        *,
        client_id: Optional[str] = None,
        email: Optional[str] = None,
        identity_user_id: Optional[str] = None,
        reason: Optional[str] = None,
        admin_email: Optional[str] = None,
    ) -> RemovalResult:
        return self._remove(
            AccountRole.CLIENT,
            profile_id=client_id,
            email=email,
            identity_user_id=identity_user_id,
            reason=reason,
            admin_email=admin_email,
        )

    def _remove(
        self,
        role: AccountRole,
        *,
        profile_id: Optional[str],
        email: Optional[str],
        identity_user_id: Optional[str],
        reason: Optional[str],
        admin_email: Optional[str],
    ) -> RemovalResult:
        if not profile_id and not email:
            raise ValidationException(
                f"Either a {role.value} id or an email is required",
                code="MISSING_FIELDS",
            )

        profile_repository = self._profile_repository(role)
        if profile_id:
            profile = profile_repository.get_by_id(profile_id)
        else:
            profile = profile_repository.get_by_email(email)
        email = email or (profile.email if profile else None)

        banned_user_id = identity_user_id or email
        if not banned_user_id:
            raise ValidationException(
                f"No user id or email available to ban {role.value}",
                code="MISSING_FIELDS",
                details={f"{role.value}_id": profile_id},
            )

        try:
            with self.transaction():
                self.banned_repository.create(
                    user_id=banned_user_id,
                    email=email,
                    role=role.value,
                    reason=reason,
                    banned_by_email=admin_email,
                )
        except RepositoryException as exc:
            self.logger.error(f"Failed to write ban record for {banned_user_id}: {str(exc)}")
            raise ServiceException("Failed to record ban", code="BAN_WRITE_FAILED") from exc

        profile_removed = False
        if profile is not None:
            with self.transaction():
                profile_removed = profile_repository.delete(profile.id)
        self.logger.info(
            "Banned %s %s (profile_removed=%s) by %s",
            role.value,
            banned_user_id,
            profile_removed,
            admin_email,
        )

        identity_user_deleted, warning = self._delete_identity_user(identity_user_id, email)
        return RemovalResult(
            user_id=banned_user_id,
            role=role,
            profile_removed=profile_removed,
            identity_user_deleted=identity_user_deleted,
            warning=warning,
        )

    def _delete_identity_user(
        self, identity_user_id: Optional[str], email: Optional[str]
    ) -> Tuple[bool, Optional[PartialSuccessWarning]]:
        """Delete the user at the identity provider; failures become a warning."""
        user_id = identity_user_id
        try:
            if not user_id and email:
                user_id = self.identity_client.find_user_id_by_email(email)
            if not user_id:
                return False, None
            self.identity_client.delete_user(user_id)
        except IdentityProviderError as exc:
            self.logger.warning(
                "Identity provider cleanup failed for %s: %s", user_id or email, exc
            )
            return False, PartialSuccessWarning(
                message="User banned, but failed to delete identity provider user.",
                step="identity_provider_delete",
                details={"user_id": user_id, "status_code": exc.status_code},
            )
        return True, None

    @BaseService.measure_operation("unban")
    def unban(
        self,
        role: AccountRole | str,
        *,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> int:
        """Remove ban records so the user can re-apply; returns how many were removed."""
        if not user_id and not email:
            raise ValidationException("Missing userId or email", code="MISSING_FIELDS")
        role = _coerce_role(role)
        with self.transaction():
            bans = self.banned_repository.find_ban(role.value, user_id=user_id, email=email)
            for ban in bans:
                self.banned_repository.delete(ban.id)
        self.logger.info("Unbanned %s %s (%d records)", role.value, user_id or email, len(bans))
        return len(bans)

    def list_banned(self, role: AccountRole | str) -> List[BannedAccount]:
        return self.banned_repository.list_by_role(_coerce_role(role).value)
