"""SLA breach escalation sweep."""

import logging

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.logging import log_context
from surveypulse.domains.action.models import (
    Action,
    ActionPriority,
    AssignmentHistoryEntry,
    HistoryKind,
)
from surveypulse.domains.action.repository import ActionRepositoryInterface
from surveypulse.domains.action.sla import SlaPolicy, next_priority
from surveypulse.integrations.notifications import (
    NotificationEvent,
    NotificationSink,
    publish_safely,
)

logger = logging.getLogger(__name__)

ESCALATED_TAG = "escalated"


class ActionEscalator:
    """Raises the priority of unresolved actions whose SLA target passed."""

    def __init__(
        self,
        actions: ActionRepositoryInterface,
        sla_policy: SlaPolicy,
        notifications: NotificationSink | None,
        tenant_id: str,
        clock: Clock = system_clock,
    ):
        self._actions = actions
        self._sla = sla_policy
        self._notifications = notifications
        self._tenant_id = tenant_id
        self._clock = clock

    async def run(self, limit: int = 100) -> list[Action]:
        """
        Escalate every breached action once.

        Returns:
            Actions that were changed by this run
        """
        now = self._clock.now()
        changed: list[Action] = []

        for action in await self._actions.find_breached(now, limit=limit):
            updated = await self._escalate(action, now)
            if updated is not None:
                changed.append(updated)

        if changed:
            logger.info(
                f"Escalated {len(changed)} breached action(s)",
                extra=log_context(tenant_id=self._tenant_id),
            )
        return changed

    async def _escalate(self, action: Action, now) -> Action | None:
        context = log_context(tenant_id=self._tenant_id, action_id=action.id)

        if action.priority == ActionPriority.HIGH:
            # Ceiling reached; record the breach once
            return await self._actions.update(
                action.id,
                {"sla.is_breached": True, "updated_at": now},
                expected_priority=ActionPriority.HIGH.value,
            )

        new_priority = next_priority(action.priority)
        due_date = self._sla.due_date_for(new_priority, now)
        note = f"Auto-escalated: SLA breached ({action.priority} -> {new_priority})"

        updated = await self._actions.update(
            action.id,
            {
                "priority": new_priority,
                "due_date": due_date,
                "sla.target_resolution_time": due_date,
                "sla.next_reminder_at": self._sla.next_reminder_for(new_priority, now),
                "sla.is_breached": True,
                "updated_at": now,
            },
            history_entry=AssignmentHistoryEntry(
                from_user=action.assigned_to,
                to_user=action.assigned_to,
                to_team=action.assigned_to_team,
                by=None,
                at=now,
                # Escalation keeps the assignee, so it keeps the assignment origin
                auto=action.auto_assigned,
                note=note,
                kind=HistoryKind.ESCALATION,
            ),
            add_tags=[ESCALATED_TAG],
            expected_priority=action.priority,
        )
        if updated is None:
            # Resolved or escalated by someone else in the meantime
            logger.info("Escalation skipped, action changed concurrently", extra=context)
            return None

        logger.info(note, extra=context)

        if new_priority == ActionPriority.HIGH.value:
            await publish_safely(
                self._notifications,
                NotificationEvent(
                    type="action_escalated",
                    tenant_id=self._tenant_id,
                    user_id=updated.assigned_to,
                    action_id=updated.id,
                    payload={
                        "title": updated.title,
                        "previous_priority": action.priority,
                        "priority": new_priority,
                        "due_date": due_date.isoformat(),
                    },
                    created_at=now,
                ),
            )
        return updated
