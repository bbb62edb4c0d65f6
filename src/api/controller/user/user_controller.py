"""
User controller: holdings refresh and profile settings for the caller.
"""

from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.middleware.authentication.jwt_bearer import get_current_session
from src.core.dependencies import get_holdings_service, get_profile_service
from src.core.service.auth.models.session import AuthenticatedSession
from src.core.service.holdings.holdings_service import HoldingsService
from src.core.service.holdings.models import FungibleHolding, MetadataFailure, NftCollection
from src.core.service.profile.profile_service import ProfileService

router = APIRouter(prefix="/users/me", tags=["Users"])


class HoldingsResponseDto(BaseModel):
    tokensOwnedByMint: Dict[str, FungibleHolding]
    tokensOwnedByCollection: Dict[str, NftCollection]
    metadata_failures: List[MetadataFailure] = Field(default_factory=list)


class UserNameRequestDto(BaseModel):
    user_name: str = Field(..., description="New user name")


class UserNameResponseDto(BaseModel):
    status: str
    user_name: str


@router.post("/holdings/refresh", response_model=HoldingsResponseDto)
async def refresh_holdings(
    session: AuthenticatedSession = Depends(get_current_session),
    holdings_service: HoldingsService = Depends(get_holdings_service)
):
    """Re-read the caller's token balances from chain and store the new snapshot."""
    result = await holdings_service.refresh_holdings(session)
    return HoldingsResponseDto(
        tokensOwnedByMint=result.snapshot.fungible,
        tokensOwnedByCollection=result.snapshot.nft_collections,
        metadata_failures=result.metadata_failures
    )


@router.put("/username", response_model=UserNameResponseDto)
async def edit_user_name(
    request: UserNameRequestDto,
    session: AuthenticatedSession = Depends(get_current_session),
    profile_service: ProfileService = Depends(get_profile_service)
):
    result = await profile_service.edit_user_name(session, request.user_name)
    return UserNameResponseDto(status=result.status.value, user_name=result.user_name)
