"""Invite API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from surveypulse.core.clock import Clock
from surveypulse.core.config import settings
from surveypulse.dependencies.auth import ManagerOnly
from surveypulse.dependencies.services import TenantRepos, get_clock
from surveypulse.domains.invite.schemas import InviteCreate, InviteResponse
from surveypulse.domains.invite.service import InviteService

router = APIRouter()


def get_invite_service(
    repos: TenantRepos,
    clock: Annotated[Clock, Depends(get_clock)],
) -> InviteService:
    """Get invite service for the caller's tenant."""
    return InviteService(
        repositories=repos,
        expiry_days=settings.invite_expiry_days,
        max_attempts=settings.invite_max_attempts,
        clock=clock,
    )


@router.post(
    "/surveys/{survey_id}/invites",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue invite",
    description="Issue an invite link for a survey. The token goes out by email, SMS or WhatsApp.",
)
async def create_invite(
    survey_id: str,
    data: InviteCreate,
    user: ManagerOnly,
    service: Annotated[InviteService, Depends(get_invite_service)],
):
    """Issue a survey invite."""
    invite = await service.create_invite(survey_id, data)
    return InviteResponse(
        id=invite.id,
        survey_id=invite.survey_id,
        token=invite.token,
        status=invite.status,
        user_id=invite.user_id,
        email=invite.recipient_email,
        expires_at=invite.expires_at,
        max_attempts=invite.max_attempts,
        created_at=invite.created_at,
    )
