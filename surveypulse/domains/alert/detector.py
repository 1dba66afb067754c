"""Repeated complaint detection."""

import logging
from dataclasses import asdict, dataclass
from datetime import timedelta

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.logging import log_context
from surveypulse.domains.action.models import ActionSource
from surveypulse.domains.action.repository import ActionRepositoryInterface
from surveypulse.integrations.notifications import (
    NotificationEvent,
    NotificationSink,
    publish_safely,
)

logger = logging.getLogger(__name__)

FEEDBACK_SOURCES = [ActionSource.AI_GENERATED.value, ActionSource.SURVEY_FEEDBACK.value]


@dataclass
class Alert:
    """A category that keeps coming back in feedback."""

    type: str
    category: str
    count: int
    threshold: int
    period: str
    severity: str
    message: str


class AlertDetector:
    """Counts feedback-driven actions per category in a rolling window."""

    def __init__(
        self,
        actions: ActionRepositoryInterface,
        notifications: NotificationSink | None,
        tenant_id: str,
        clock: Clock = system_clock,
    ):
        self._actions = actions
        self._notifications = notifications
        self._tenant_id = tenant_id
        self._clock = clock

    async def check_repeated_complaints(
        self, hours: int = 24, threshold: int = 3, category: str | None = None
    ) -> list[Alert]:
        """
        Emit an alert for every category with at least ``threshold`` actions
        in the last ``hours``.

        Severity is critical at twice the threshold. Passing ``category``
        restricts the check to that category.
        """
        since = self._clock.now() - timedelta(hours=hours)
        counts = await self._actions.count_recent_by_category(since, FEEDBACK_SOURCES)
        if category is not None:
            counts = {category: counts.get(category, 0)}

        alerts: list[Alert] = []
        for category, count in sorted(counts.items()):
            if count < threshold:
                continue
            severity = "critical" if count >= 2 * threshold else "warning"
            alerts.append(
                Alert(
                    type="repeated_complaint",
                    category=category,
                    count=count,
                    threshold=threshold,
                    period=f"{hours}h",
                    severity=severity,
                    message=f"{count} '{category}' issues reported in the last {hours} hours",
                )
            )

        for alert in alerts:
            logger.warning(alert.message, extra=log_context(tenant_id=self._tenant_id))
            await publish_safely(
                self._notifications,
                NotificationEvent(
                    type=alert.type,
                    tenant_id=self._tenant_id,
                    payload=asdict(alert),
                    created_at=self._clock.now(),
                ),
            )
        return alerts
