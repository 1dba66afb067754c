"""Response domain service - validates submissions and hands them to the pipeline."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.exceptions import (
    DuplicateError,
    GoneError,
    InvalidInviteTokenError,
    InviteExpiredError,
    MaxAttemptsExceededError,
    NotFoundError,
    SurveyAlreadySubmittedError,
    SurveyNotActiveError,
    SurveyUnavailableError,
    UnknownQuestionError,
)
from surveypulse.core.logging import log_context
from surveypulse.domains.analysis.metrics import extract_metrics
from surveypulse.domains.invite.models import InviteStatus, SurveyInvite
from surveypulse.domains.invite.repository import InviteTokenLookupInterface
from surveypulse.domains.repositories import TenantRepositories
from surveypulse.domains.response.metadata import build_metadata
from surveypulse.domains.response.models import Answer, Response
from surveypulse.domains.response.schemas import ResponseSubmit
from surveypulse.domains.survey.models import Survey, SurveyStatus
from surveypulse.domains.survey.repository import PublicSurveyLookupInterface
from surveypulse.integrations.geo import GeoLocator
from surveypulse.jobs.base import JobQueue

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[str], TenantRepositories]


@dataclass
class RequestInfo:
    """Client details taken from the HTTP request."""

    ip: str | None = None
    user_agent: str | None = None


class ResponseIntakeService:
    """
    Accepts survey submissions on the three entry paths.

    A submission is persisted before anything else happens; queueing
    problems are logged and never undo it.
    """

    def __init__(
        self,
        invite_lookup: InviteTokenLookupInterface,
        survey_lookup: PublicSurveyLookupInterface,
        repositories_for: RepositoryFactory,
        queue: JobQueue,
        geo: GeoLocator | None = None,
        clock: Clock = system_clock,
    ):
        self._invite_lookup = invite_lookup
        self._survey_lookup = survey_lookup
        self._repositories_for = repositories_for
        self._queue = queue
        self._geo = geo
        self._clock = clock

    # ============================================================
    # Invited respondents
    # ============================================================

    async def verify_token(self, token: str) -> tuple[SurveyInvite, Survey]:
        """
        Resolve an invite token for display and mark the invite opened.

        Raises:
            InvalidInviteTokenError: Unknown token
            GoneError: Invite already used, expired, or its survey was removed
            SurveyNotActiveError: Survey is not active
        """
        invite = await self._invite_lookup.get_by_token(token)
        if not invite:
            raise InvalidInviteTokenError()
        if invite.status == InviteStatus.RESPONDED.value:
            raise GoneError("Survey already submitted for this invite")

        now = self._clock.now()
        repos = self._repositories_for(invite.tenant_id)
        survey = await repos.surveys.get_by_id(invite.survey_id)
        if not survey or survey.deleted:
            raise GoneError("Survey is no longer available")
        if invite.expires_at < now:
            raise InviteExpiredError()
        if survey.status != SurveyStatus.ACTIVE.value:
            raise SurveyNotActiveError()
        if not survey.is_within_schedule(now):
            raise InviteExpiredError("Survey is closed")

        if invite.status == InviteStatus.SENT.value:
            await repos.invites.mark_opened(invite.id, now)
        return invite, survey

    async def submit_invited(
        self, token: str, data: ResponseSubmit, request: RequestInfo
    ) -> Response:
        """
        Submit a response through an invite link.

        The token is the idempotency key: a retry after a partial failure
        finds the stored response instead of creating a second one.
        """
        invite = await self._invite_lookup.get_by_token(token)
        if not invite:
            raise InvalidInviteTokenError()
        if invite.status == InviteStatus.RESPONDED.value:
            raise SurveyAlreadySubmittedError()

        now = self._clock.now()
        repos = self._repositories_for(invite.tenant_id)
        survey = await repos.surveys.get_by_id(invite.survey_id)
        if invite.expires_at < now:
            raise InviteExpiredError()
        if not survey or not survey.accepts_responses(now):
            raise InviteExpiredError("Survey is closed")
        if invite.attempt_count >= invite.max_attempts:
            raise MaxAttemptsExceededError(invite.max_attempts)

        await repos.invites.increment_attempts(invite.id)
        self._check_answers(data, survey)

        email = data.email or invite.recipient_email
        response = await self._build_response(
            repos, survey, data, request, email=email, invite_id=invite.id, user_id=invite.user_id
        )
        try:
            response = await repos.responses.create(response)
        except DuplicateError:
            existing = await repos.responses.get_by_invite_id(invite.id)
            if not existing:
                raise
            logger.info(
                "Response already stored for invite, reusing it",
                extra=log_context(tenant_id=invite.tenant_id, response_id=existing.id),
            )
            response = existing

        await repos.invites.mark_responded(invite.id, now)
        await self._enqueue(response)
        return response

    # ============================================================
    # Anonymous and signed-in respondents
    # ============================================================

    async def submit_anonymous(
        self, survey_id: str, data: ResponseSubmit, request: RequestInfo
    ) -> Response:
        """Submit a response to a public survey link."""
        survey = await self._survey_lookup.get_by_id(survey_id)
        if not survey:
            raise NotFoundError("Survey", survey_id)
        if not survey.accepts_responses(self._clock.now()):
            raise SurveyUnavailableError(survey_id)

        self._check_answers(data, survey)
        repos = self._repositories_for(survey.tenant_id)
        response = await self._build_response(
            repos, survey, data, request, email=data.email, is_anonymous=True
        )
        response = await repos.responses.create(response)
        await self._enqueue(response)
        return response

    async def submit_authenticated(
        self, user: dict, survey_id: str, data: ResponseSubmit, request: RequestInfo
    ) -> Response:
        """Submit a response as a signed-in member of the survey's tenant."""
        repos = self._repositories_for(user["tenant_id"])
        survey = await repos.surveys.get_by_id(survey_id)
        if not survey or survey.deleted:
            raise NotFoundError("Survey", survey_id)
        if not survey.accepts_responses(self._clock.now()):
            raise SurveyNotActiveError()

        self._check_answers(data, survey)
        response = await self._build_response(
            repos,
            survey,
            data,
            request,
            email=data.email or user.get("email"),
            user_id=user["user_id"],
        )
        response = await repos.responses.create(response)
        await self._enqueue(response)
        return response

    # ============================================================
    # Helpers
    # ============================================================

    @staticmethod
    def _check_answers(data: ResponseSubmit, survey: Survey) -> None:
        questions = survey.question_map()
        for answer in data.answers:
            if answer.question_id not in questions:
                raise UnknownQuestionError(answer.question_id)

    async def _build_response(
        self,
        repos: TenantRepositories,
        survey: Survey,
        data: ResponseSubmit,
        request: RequestInfo,
        email: str | None = None,
        invite_id: str | None = None,
        user_id: str | None = None,
        is_anonymous: bool | None = None,
    ) -> Response:
        answers = [Answer(question_id=a.question_id, answer=a.answer) for a in data.answers]

        score, rating = data.score, data.rating
        if score is None or rating is None:
            metrics = extract_metrics(answers, survey.questions)
            if score is None and metrics.nps_score is not None:
                score = metrics.nps_score
            # Only 1-5 ratings fit the response field
            if rating is None and metrics.rating is not None and 1 <= metrics.rating <= 5:
                rating = metrics.rating

        contact_id = None
        if email:
            contact = await repos.contacts.get_by_email(email)
            contact_id = contact.id if contact else None

        return Response(
            tenant_id=repos.tenant_id,
            survey_id=survey.id,
            invite_id=invite_id,
            contact_id=contact_id,
            user_id=user_id,
            email=email,
            answers=answers,
            review=data.review,
            rating=rating,
            score=score,
            is_anonymous=data.is_anonymous if is_anonymous is None else is_anonymous,
            ip=request.ip,
            metadata=await build_metadata(request.user_agent, request.ip, self._geo),
            completion_time=data.completion_time,
            started_at=data.started_at,
            submitted_at=self._clock.now(),
        )

    async def _enqueue(self, response: Response) -> None:
        context = log_context(
            tenant_id=response.tenant_id, survey_id=response.survey_id, response_id=response.id
        )
        try:
            await self._queue.enqueue(
                {
                    "response_id": response.id,
                    "survey_id": response.survey_id,
                    "tenant_id": response.tenant_id,
                },
                job_id=response.id,
            )
        except Exception as e:
            # The response stays stored; it can be re-queued from the response id
            logger.error(f"Failed to enqueue response processing: {e}", extra=context)
            return
        logger.info("Response submitted", extra=context)
