"""Invite domain service - issuing survey invites."""

import logging
from datetime import timedelta

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.exceptions import NotFoundError
from surveypulse.core.logging import log_context
from surveypulse.core.security import generate_invite_token
from surveypulse.domains.contact.stats import ContactStatsAggregator
from surveypulse.domains.invite.models import InviteContact, SurveyInvite
from surveypulse.domains.invite.schemas import InviteCreate
from surveypulse.domains.repositories import TenantRepositories

logger = logging.getLogger(__name__)


class InviteService:
    """Survey invite issuing service."""

    def __init__(
        self,
        repositories: TenantRepositories,
        expiry_days: int = 30,
        max_attempts: int = 5,
        clock: Clock = system_clock,
    ):
        self._repos = repositories
        self._expiry_days = expiry_days
        self._max_attempts = max_attempts
        self._clock = clock

    async def create_invite(self, survey_id: str, data: InviteCreate) -> SurveyInvite:
        """
        Issue an invite for a survey of the tenant.

        Counts the invite against the recipient's contact stats when the
        invite is addressed to an email.

        Raises:
            NotFoundError: If the survey does not exist in the tenant
        """
        survey = await self._repos.surveys.get_by_id(survey_id)
        if not survey or survey.deleted:
            raise NotFoundError("Survey", survey_id)

        now = self._clock.now()
        contact = None
        if not data.user_id:
            contact = InviteContact(name=data.name, email=data.email, phone=data.phone)

        invite = await self._repos.invites.create(
            SurveyInvite(
                tenant_id=self._repos.tenant_id,
                survey_id=survey_id,
                user_id=data.user_id,
                contact=contact,
                token=generate_invite_token(),
                expires_at=now + timedelta(days=self._expiry_days),
                max_attempts=self._max_attempts,
                created_at=now,
            )
        )

        if invite.recipient_email:
            stats = ContactStatsAggregator(
                contacts=self._repos.contacts,
                invites=self._repos.invites,
                responses=self._repos.responses,
                tenant_id=self._repos.tenant_id,
                clock=self._clock,
            )
            await stats.on_survey_invite(invite.recipient_email, now)

        logger.info(
            "Invite issued",
            extra=log_context(tenant_id=self._repos.tenant_id, survey_id=survey_id),
        )
        return invite
