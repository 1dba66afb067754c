"""Contact survey stats aggregator.

Contact.survey_stats is only ever written from here. Invite events use a
store-side increment; response events use a guarded update carrying the
previous responded_count so concurrent workers cannot lose an update or
break the running averages.
"""

import logging
from datetime import datetime
from typing import Any

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.exceptions import IntegrityError
from surveypulse.core.logging import log_context
from surveypulse.domains.analysis.metrics import nps_category
from surveypulse.domains.contact.models import SurveyStats
from surveypulse.domains.contact.repository import ContactRepositoryInterface
from surveypulse.domains.invite.repository import InviteRepositoryInterface
from surveypulse.domains.response.repository import ResponseRepositoryInterface

logger = logging.getLogger(__name__)

RESPONSE_STAT_FIELDS = (
    "responded_count",
    "last_response_date",
    "latest_nps_score",
    "avg_nps_score",
    "nps_total",
    "nps_count",
    "nps_category",
    "latest_rating",
    "avg_rating",
    "rating_total",
    "rating_count",
)


def apply_response(
    stats: SurveyStats,
    nps_score: float | None,
    rating: float | None,
    responded_at: datetime,
) -> SurveyStats:
    """Return the stats after one more response. Pure."""
    updated = stats.model_copy(deep=True)
    updated.responded_count = stats.responded_count + 1
    updated.last_response_date = responded_at

    if nps_score is not None:
        updated.latest_nps_score = nps_score
        updated.nps_total = stats.nps_total + nps_score
        updated.nps_count = stats.nps_count + 1
        updated.avg_nps_score = updated.nps_total / updated.nps_count
        updated.nps_category = nps_category(nps_score)

    if rating is not None:
        updated.latest_rating = rating
        updated.rating_total = stats.rating_total + rating
        updated.rating_count = stats.rating_count + 1
        updated.avg_rating = updated.rating_total / updated.rating_count

    return updated


def response_update_fields(stats: SurveyStats, responded_at: datetime) -> dict[str, Any]:
    """Dotted $set paths for the response-derived part of the stats."""
    fields = {
        f"survey_stats.{name}": getattr(stats, name) for name in RESPONSE_STAT_FIELDS
    }
    fields["last_activity"] = responded_at
    return fields


class ContactStatsAggregator:
    """Maintains per-contact invite/response counters and averages."""

    def __init__(
        self,
        contacts: ContactRepositoryInterface,
        invites: InviteRepositoryInterface,
        responses: ResponseRepositoryInterface,
        tenant_id: str,
        max_retries: int = 5,
        include_anonymous: bool = True,
        clock: Clock = system_clock,
    ):
        self._contacts = contacts
        self._invites = invites
        self._responses = responses
        self._tenant_id = tenant_id
        self._max_retries = max_retries
        self._include_anonymous = include_anonymous
        self._clock = clock

    async def on_survey_invite(self, email: str, invited_at: datetime | None = None) -> bool:
        """Count an invite against the contact with this email."""
        invited_at = invited_at or self._clock.now()
        matched = await self._contacts.record_invite(email, invited_at)
        if not matched:
            logger.debug(
                "No contact for invite email",
                extra=log_context(tenant_id=self._tenant_id),
            )
        return matched

    async def on_survey_response(
        self,
        email: str,
        nps_score: float | None = None,
        rating: float | None = None,
        responded_at: datetime | None = None,
    ) -> SurveyStats | None:
        """
        Fold one response into the contact's stats.

        Returns:
            The stats written, or None when no contact has this email

        Raises:
            IntegrityError: If the guarded update kept conflicting
        """
        responded_at = responded_at or self._clock.now()

        for attempt in range(1, self._max_retries + 1):
            contact = await self._contacts.get_by_email(email)
            if not contact:
                logger.debug(
                    "No contact for response email",
                    extra=log_context(tenant_id=self._tenant_id),
                )
                return None

            previous = contact.survey_stats
            updated = apply_response(previous, nps_score, rating, responded_at)
            applied = await self._contacts.apply_response_stats(
                contact.id,
                previous.responded_count,
                response_update_fields(updated, responded_at),
            )
            if applied:
                return updated

            logger.info(
                f"Contact stats update conflicted (attempt {attempt}), retrying",
                extra=log_context(tenant_id=self._tenant_id),
            )

        raise IntegrityError(
            "Contact stats update kept conflicting",
            details={"tenant_id": self._tenant_id, "attempts": self._max_retries},
        )

    async def recalculate_contact(self, email: str) -> SurveyStats | None:
        """Rebuild a contact's stats from the invite and response collections."""
        contact = await self._contacts.get_by_email(email)
        if not contact:
            return None

        invited_count, last_invited = await self._invites.summarize_for_email(email)
        stats = SurveyStats(invited_count=invited_count, last_invited_date=last_invited)

        records = await self._responses.list_metrics_for_email(
            email, include_anonymous=self._include_anonymous
        )
        for record in records:
            stats = apply_response(
                stats, record.nps_score, record.rating, record.submitted_at
            )

        await self._contacts.replace_survey_stats(contact.id, stats)
        return stats

    async def recalculate_all(self) -> int:
        """Rebuild stats for every contact of the tenant."""
        emails = await self._contacts.list_emails()
        for email in emails:
            await self.recalculate_contact(email)
        logger.info(
            f"Recalculated survey stats for {len(emails)} contacts",
            extra=log_context(tenant_id=self._tenant_id),
        )
        return len(emails)
