"""
Vote controller: up/down votes on posts and comments.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.middleware.authentication.jwt_bearer import get_current_session
from src.core.dependencies import get_vote_service
from src.core.service.auth.models.session import AuthenticatedSession
from src.core.service.vote.models import ContentKind, ContentRef, VoteDirection
from src.core.service.vote.vote_service import VoteService

router = APIRouter(tags=["Votes"])


class VoteRequestDto(BaseModel):
    direction: VoteDirection = Field(..., description="up or down")


class VoteResponseDto(BaseModel):
    success: bool = True
    content_id: str
    kind: str
    direction: str
    info: str


async def _vote(kind: ContentKind, content_id: str, request: VoteRequestDto,
                session: AuthenticatedSession, vote_service: VoteService) -> VoteResponseDto:
    result = await vote_service.vote(request.direction, session, ContentRef(kind=kind, id=content_id))
    return VoteResponseDto(
        content_id=result.content_id,
        kind=result.kind.value,
        direction=result.direction.value,
        info=result.info
    )


@router.post("/posts/{post_id}/votes", response_model=VoteResponseDto)
async def vote_on_post(
    post_id: str,
    request: VoteRequestDto,
    session: AuthenticatedSession = Depends(get_current_session),
    vote_service: VoteService = Depends(get_vote_service)
):
    """Vote on a post. The caller must meet the post's token requirements."""
    return await _vote(ContentKind.POST, post_id, request, session, vote_service)


@router.post("/comments/{comment_id}/votes", response_model=VoteResponseDto)
async def vote_on_comment(
    comment_id: str,
    request: VoteRequestDto,
    session: AuthenticatedSession = Depends(get_current_session),
    vote_service: VoteService = Depends(get_vote_service)
):
    """Vote on a comment. Comments without their own policy use the parent post's."""
    return await _vote(ContentKind.COMMENT, comment_id, request, session, vote_service)
