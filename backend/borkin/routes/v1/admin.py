# backend/borkin/routes/v1/admin.py
"""
Admin routes - API v1

Account removal, bans and processor reference maintenance. Every endpoint
requires an allow-listed admin email in the ``X-Admin-Email`` header.

Endpoints:
    POST /remove-contractor              → Ban and remove a contractor
    POST /remove-client                  → Ban and remove a client
    POST /unban                          → Lift a ban
    GET /banned?role=                    → List bans for a role
    POST /payment-references/purge       → Clear ids from the other Stripe mode
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query

from ...api.dependencies.admin import require_admin_email
from ...api.dependencies.services import (
    get_account_removal_service,
    get_payment_account_service,
)
from ...core.enums import AccountRole
from ...core.exceptions import DomainException
from ...schemas.admin_schemas import (
    BannedAccountResponse,
    BannedListResponse,
    PurgeReferencesResponse,
    RemovalResponse,
    RemoveClientRequest,
    RemoveContractorRequest,
    UnbanRequest,
    UnbanResponse,
)
from ...services.account_removal_service import AccountRemovalService
from ...services.payment_account_service import PaymentAccountService
from ._errors import handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["admin-v1"])


@router.post("/remove-contractor", response_model=RemovalResponse)
async def remove_contractor(
    payload: RemoveContractorRequest,
    admin_email: str = Depends(require_admin_email),
    removal_service: AccountRemovalService = Depends(get_account_removal_service),
) -> RemovalResponse:
    """
    Ban a contractor and delete their profile.

    Failing to delete the identity provider user does not fail the request;
    the response carries a ``warning`` instead.
    """
    try:
        result = await asyncio.to_thread(
            lambda: removal_service.remove_contractor(
                contractor_id=payload.contractor_id,
                email=payload.email,
                identity_user_id=payload.identity_user_id,
                reason=payload.reason,
                admin_email=admin_email,
            )
        )
        return RemovalResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/remove-client", response_model=RemovalResponse)
async def remove_client(
    payload: RemoveClientRequest,
    admin_email: str = Depends(require_admin_email),
    removal_service: AccountRemovalService = Depends(get_account_removal_service),
) -> RemovalResponse:
    try:
        result = await asyncio.to_thread(
            lambda: removal_service.remove_client(
                client_id=payload.client_id,
                email=payload.email,
                identity_user_id=payload.identity_user_id,
                reason=payload.reason,
                admin_email=admin_email,
            )
        )
        return RemovalResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/unban", response_model=UnbanResponse)
async def unban(
    payload: UnbanRequest,
    admin_email: str = Depends(require_admin_email),
    removal_service: AccountRemovalService = Depends(get_account_removal_service),
) -> UnbanResponse:
    try:
        removed = await asyncio.to_thread(
            lambda: removal_service.unban(
                payload.role, user_id=payload.user_id, email=payload.email
            )
        )
        logger.info("Admin %s lifted %d %s ban(s)", admin_email, removed, payload.role.value)
        return UnbanResponse(removed=removed)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/banned", response_model=BannedListResponse)
async def list_banned(
    role: AccountRole = Query(...),
    _admin_email: str = Depends(require_admin_email),
    removal_service: AccountRemovalService = Depends(get_account_removal_service),
) -> BannedListResponse:
    try:
        bans = await asyncio.to_thread(removal_service.list_banned, role)
        return BannedListResponse(
            banned=[BannedAccountResponse.model_validate(ban) for ban in bans]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/payment-references/purge", response_model=PurgeReferencesResponse)
async def purge_payment_references(
    admin_email: str = Depends(require_admin_email),
    account_service: PaymentAccountService = Depends(get_payment_account_service),
) -> PurgeReferencesResponse:
    """Clear stored payout accounts and customers created in the other Stripe mode."""
    try:
        summary = await asyncio.to_thread(account_service.purge_mismatched_references)
        logger.info("Admin %s purged mismatched payment references: %s", admin_email, summary)
        return PurgeReferencesResponse(
            current_mode=str(summary["current_mode"]),
            cleaned_contractors=int(summary["cleaned_contractors"]),
            cleaned_clients=int(summary["cleaned_clients"]),
            message=(
                f"Cleared {summary['cleaned_contractors']} contractor and "
                f"{summary['cleaned_clients']} client reference(s) from the other mode"
            ),
        )
    except DomainException as e:
        handle_domain_exception(e)
