"""Admin account-removal schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, EmailStr, Field

from ..core.enums import AccountRole
from ..services.account_removal_service import RemovalResult
from ._strict_base import StrictModel, StrictRequestModel


class RemoveContractorRequest(StrictRequestModel):
    contractor_id: Optional[str] = None
    identity_user_id: Optional[str] = Field(default=None, description="Clerk user id")
    email: Optional[EmailStr] = None
    reason: Optional[str] = Field(default=None, max_length=1000)


class RemoveClientRequest(StrictRequestModel):
    client_id: Optional[str] = None
    identity_user_id: Optional[str] = Field(default=None, description="Clerk user id")
    email: Optional[EmailStr] = None
    reason: Optional[str] = Field(default=None, max_length=1000)


class RemovalResponse(StrictModel):
    """Removal outcome; ``warning`` is set when identity cleanup failed."""

    success: bool = True
    user_id: str
    profile_removed: bool
    identity_user_deleted: bool
    warning: Optional[str] = None

    @classmethod
    def from_result(cls, result: RemovalResult) -> "RemovalResponse":
        return cls(
            user_id=result.user_id,
            profile_removed=result.profile_removed,
            identity_user_deleted=result.identity_user_deleted,
            warning=result.warning.message if result.warning else None,
        )


class UnbanRequest(StrictRequestModel):
    role: AccountRole
    user_id: Optional[str] = None
    email: Optional[EmailStr] = None


class UnbanResponse(StrictModel):
    success: bool = True
    removed: int


class BannedAccountResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    user_id: str
    email: Optional[str] = None
    role: str
    reason: Optional[str] = None
    banned_by_email: Optional[str] = None
    created_at: Optional[datetime] = None


class BannedListResponse(StrictModel):
    banned: List[BannedAccountResponse]


class PurgeReferencesResponse(StrictModel):
    success: bool = True
    current_mode: str
    cleaned_contractors: int
    cleaned_clients: int
    message: str
