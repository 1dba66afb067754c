"""Response intake API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from surveypulse.core.clock import Clock
from surveypulse.dependencies.auth import CurrentUser
from surveypulse.dependencies.services import (
    RepositoryFactory,
    get_clock,
    get_geo_locator,
    get_invite_lookup,
    get_job_queue,
    get_repositories_factory,
    get_survey_lookup,
)
from surveypulse.domains.invite.repository import InviteTokenLookupInterface
from surveypulse.domains.response.models import Response
from surveypulse.domains.response.schemas import (
    InviteVerification,
    PublicQuestion,
    PublicSurvey,
    ResponseSubmit,
    SubmitResult,
)
from surveypulse.domains.response.service import RequestInfo, ResponseIntakeService
from surveypulse.domains.survey.repository import PublicSurveyLookupInterface
from surveypulse.integrations.geo import GeoLocator
from surveypulse.jobs.base import JobQueue
from surveypulse.middlewares.security import get_client_ip

router = APIRouter()


def get_intake_service(
    invite_lookup: Annotated[InviteTokenLookupInterface, Depends(get_invite_lookup)],
    survey_lookup: Annotated[PublicSurveyLookupInterface, Depends(get_survey_lookup)],
    factory: Annotated[RepositoryFactory, Depends(get_repositories_factory)],
    queue: Annotated[JobQueue, Depends(get_job_queue)],
    geo: Annotated[GeoLocator | None, Depends(get_geo_locator)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> ResponseIntakeService:
    """Get response intake service."""
    return ResponseIntakeService(
        invite_lookup=invite_lookup,
        survey_lookup=survey_lookup,
        repositories_for=factory,
        queue=queue,
        geo=geo,
        clock=clock,
    )


IntakeService = Annotated[ResponseIntakeService, Depends(get_intake_service)]


def _request_info(request: Request) -> RequestInfo:
    return RequestInfo(
        ip=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


def _submit_result(response: Response) -> SubmitResult:
    return SubmitResult(id=response.id, created_at=response.submitted_at, analysis=None)


@router.get(
    "/responses/verify/{token}",
    response_model=InviteVerification,
    summary="Verify invite token",
    description="Resolve an invite link to its survey and mark the invite opened.",
)
async def verify_invite(token: str, service: IntakeService):
    """Verify an invite token."""
    invite, survey = await service.verify_token(token)
    return InviteVerification(
        survey=PublicSurvey(
            id=survey.id,
            title=survey.title,
            description=survey.description,
            questions=[
                PublicQuestion(
                    id=question.id,
                    type=question.type,
                    text=question.text,
                    required=question.required,
                    options=question.options,
                )
                for question in survey.questions
            ],
        ),
        invite_status=invite.status,
        expires_at=invite.expires_at,
    )


@router.post(
    "/responses/{token}",
    response_model=SubmitResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit invited response",
    description="Submit a response through an invite link. Analysis runs in the background.",
)
async def submit_invited_response(
    token: str,
    data: ResponseSubmit,
    request: Request,
    service: IntakeService,
):
    """Submit a response for an invite token."""
    response = await service.submit_invited(token, data, _request_info(request))
    return _submit_result(response)


@router.post(
    "/surveys/responses/anonymous/{survey_id}",
    response_model=SubmitResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit anonymous response",
    description="Submit a response to an active survey without an invite.",
)
async def submit_anonymous_response(
    survey_id: str,
    data: ResponseSubmit,
    request: Request,
    service: IntakeService,
):
    """Submit an anonymous response."""
    response = await service.submit_anonymous(survey_id, data, _request_info(request))
    return _submit_result(response)


@router.post(
    "/surveys/{survey_id}/responses",
    response_model=SubmitResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit response as a member",
    description="Submit a response as a signed-in member of the survey's tenant.",
)
async def submit_member_response(
    survey_id: str,
    data: ResponseSubmit,
    request: Request,
    user: CurrentUser,
    service: IntakeService,
):
    """Submit a response with a bearer token."""
    response = await service.submit_authenticated(user, survey_id, data, _request_info(request))
    return _submit_result(response)
