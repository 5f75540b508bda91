from fastapi import APIRouter, Depends
from typing import List
import logging

from contentforge.dependencies import ServiceContainer, get_services, get_team_id
from contentforge.schemas.social_media import (
    AccountValidationResponse,
    SocialAccountCreate,
    SocialAccountResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["Social Accounts"])


@router.get("", response_model=List[SocialAccountResponse])
async def list_accounts(
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """Get all connected social accounts for the team."""
    return services.credentials.list_accounts(team_id)


@router.post("", response_model=SocialAccountResponse)
async def link_account(
    account: SocialAccountCreate,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """
    Store the tokens of an account connected through the platform's OAuth flow.

    Linking the same platform user again updates the tokens and reactivates
    the account.
    """
    return services.credentials.link_account(team_id, account)


@router.post("/{account_id}/validate", response_model=AccountValidationResponse)
async def validate_account(
    account_id: int,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    account = services.credentials.get_by_id(account_id, team_id)
    valid = await services.credentials.validate(account)
    return AccountValidationResponse(account_id=account.id, valid=valid, is_active=account.is_active)


@router.post("/{account_id}/deactivate", response_model=SocialAccountResponse)
async def deactivate_account(
    account_id: int,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    services.credentials.get_by_id(account_id, team_id)
    return services.credentials.deactivate(account_id, reason="disconnected by user")
