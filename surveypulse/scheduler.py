"""Periodic sweeps: SLA escalation and repeated-complaint alerts."""

import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.config import Settings
from surveypulse.core.logging import log_context
from surveypulse.domains.action.escalation import ActionEscalator
from surveypulse.domains.action.models import ActionStatus
from surveypulse.domains.action.sla import SlaPolicy
from surveypulse.domains.alert.detector import FEEDBACK_SOURCES, AlertDetector
from surveypulse.domains.repositories import mongo_repositories
from surveypulse.integrations.notifications import NotificationSink

logger = logging.getLogger(__name__)


class PipelineScheduler:
    """Runs the escalator and the alert detector for every active tenant."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        settings: Settings,
        notifications: NotificationSink | None,
        clock: Clock = system_clock,
    ):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._db = db
        self._settings = settings
        self._notifications = notifications
        self._sla = SlaPolicy.from_settings(settings)
        self._clock = clock

    def start(self) -> None:
        """Register the sweeps and start the scheduler."""
        self.scheduler.add_job(
            self.escalation_sweep,
            IntervalTrigger(minutes=self._settings.escalation_sweep_minutes),
            id="sla_escalation",
            name="SLA escalation sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.alert_sweep,
            IntervalTrigger(minutes=self._settings.alert_sweep_minutes),
            id="repeated_complaints",
            name="Repeated complaint detection",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    async def escalation_sweep(self) -> int:
        """Escalate breached actions in every tenant that has some."""
        now = self._clock.now()
        tenant_ids = await self._db["actions"].distinct(
            "tenant_id",
            {
                "is_deleted": False,
                "status": {"$ne": ActionStatus.RESOLVED.value},
                "sla.target_resolution_time": {"$lt": now},
            },
        )

        escalated = 0
        for tenant_id in tenant_ids:
            repos = mongo_repositories(self._db, tenant_id)
            escalator = ActionEscalator(
                repos.actions, self._sla, self._notifications, tenant_id, self._clock
            )
            try:
                escalated += len(await escalator.run())
            except Exception as e:
                logger.error(f"Escalation sweep failed: {e}", extra=log_context(tenant_id=tenant_id))
        return escalated

    async def alert_sweep(self) -> int:
        """Check repeated complaints in every tenant with recent feedback actions."""
        since = self._clock.now() - timedelta(hours=self._settings.alert_window_hours)
        tenant_ids = await self._db["actions"].distinct(
            "tenant_id",
            {"is_deleted": False, "source": {"$in": FEEDBACK_SOURCES}, "created_at": {"$gte": since}},
        )

        raised = 0
        for tenant_id in tenant_ids:
            repos = mongo_repositories(self._db, tenant_id)
            detector = AlertDetector(repos.actions, self._notifications, tenant_id, self._clock)
            try:
                alerts = await detector.check_repeated_complaints(
                    hours=self._settings.alert_window_hours,
                    threshold=self._settings.alert_threshold,
                )
                raised += len(alerts)
            except Exception as e:
                logger.error(f"Alert sweep failed: {e}", extra=log_context(tenant_id=tenant_id))
        return raised
