"""Action writer - builds, assigns and persists new actions."""

import logging
from dataclasses import dataclass, field
from typing import Any

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.exceptions import DuplicateError
from surveypulse.core.logging import log_context
from surveypulse.domains.action.models import (
    Action,
    ActionPriority,
    ActionSource,
    AssignmentHistoryEntry,
)
from surveypulse.domains.action.repository import ActionRepositoryInterface
from surveypulse.domains.action.sla import SlaPolicy
from surveypulse.domains.assignment.engine import AssignmentEngine
from surveypulse.integrations.notifications import (
    NotificationEvent,
    NotificationSink,
    publish_safely,
)

logger = logging.getLogger(__name__)


@dataclass
class ActionDraft:
    """Everything needed to create an action except assignment and SLA."""

    title: str
    description: str = ""
    priority: str = ActionPriority.MEDIUM.value
    category: str = "General"
    tags: list[str] = field(default_factory=list)
    source: str = ActionSource.MANUAL.value
    response_id: str | None = None
    feedback_id: str | None = None
    survey_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    assigned_to: str | None = None
    assigned_to_team: str | None = None
    created_by: str | None = None

    def assignment_payload(self) -> dict[str, Any]:
        """Fields assignment rule conditions can read."""
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "tags": self.tags,
            "source": self.source,
            "survey_id": self.survey_id,
            "metadata": self.metadata,
        }


class ActionWriter:
    """Creates actions with SLA tracking and rule-based assignment."""

    def __init__(
        self,
        actions: ActionRepositoryInterface,
        assignment: AssignmentEngine,
        sla_policy: SlaPolicy,
        notifications: NotificationSink | None,
        tenant_id: str,
        clock: Clock = system_clock,
    ):
        self._actions = actions
        self._assignment = assignment
        self._sla = sla_policy
        self._notifications = notifications
        self._tenant_id = tenant_id
        self._clock = clock

    async def create(self, draft: ActionDraft) -> tuple[Action, bool]:
        """
        Create an action from a draft.

        When the draft names no assignee the tenant's assignment rules are
        applied. Creation is idempotent per response for auto-generated
        actions.

        Returns:
            Tuple of (action, created). ``created`` is False when an action
            for the same response already existed.
        """
        now = self._clock.now()
        priority = draft.priority
        assigned_to = draft.assigned_to
        assigned_to_team = draft.assigned_to_team
        auto_assigned = False
        history: list[AssignmentHistoryEntry] = []

        if assigned_to is None:
            result = await self._assignment.resolve(draft.assignment_payload())
            if result is not None:
                assigned_to = result.assigned_to
                assigned_to_team = result.assigned_to_team
                auto_assigned = True
                if result.priority_override:
                    priority = result.priority_override
                history.append(
                    AssignmentHistoryEntry(
                        from_user=None,
                        to_user=assigned_to,
                        to_team=assigned_to_team,
                        by=draft.created_by,
                        at=now,
                        auto=True,
                        note=result.note,
                    )
                )
        else:
            history.append(
                AssignmentHistoryEntry(
                    from_user=None,
                    to_user=assigned_to,
                    to_team=assigned_to_team,
                    by=draft.created_by,
                    at=now,
                    auto=False,
                    note="Assigned on creation",
                )
            )

        due_date, sla = self._sla.build(priority, now)
        action = Action(
            tenant_id=self._tenant_id,
            title=draft.title,
            description=draft.description,
            priority=priority,
            source=draft.source,
            category=draft.category,
            tags=list(dict.fromkeys(draft.tags)),
            feedback_id=draft.feedback_id,
            response_id=draft.response_id,
            survey_id=draft.survey_id,
            metadata=draft.metadata,
            assigned_to=assigned_to,
            assigned_to_team=assigned_to_team,
            auto_assigned=auto_assigned,
            assignment_history=history,
            due_date=due_date,
            sla=sla,
            created_by=draft.created_by,
            created_at=now,
            updated_at=now,
        )

        try:
            action = await self._actions.create(action)
        except DuplicateError:
            existing = await self._actions.get_by_response_id(draft.response_id)
            if existing is None:
                raise
            logger.info(
                "Action already exists for response",
                extra=log_context(
                    tenant_id=self._tenant_id,
                    response_id=draft.response_id,
                    action_id=existing.id,
                ),
            )
            return existing, False

        logger.info(
            f"Action created ({action.priority}, assigned_to={action.assigned_to})",
            extra=log_context(
                tenant_id=self._tenant_id,
                survey_id=action.survey_id,
                response_id=action.response_id,
                action_id=action.id,
            ),
        )

        if action.priority == ActionPriority.HIGH or action.assigned_to:
            await publish_safely(
                self._notifications,
                NotificationEvent(
                    type="action_assigned",
                    tenant_id=self._tenant_id,
                    user_id=action.assigned_to,
                    action_id=action.id,
                    payload={
                        "title": action.title,
                        "priority": action.priority,
                        "category": action.category,
                        "due_date": action.due_date.isoformat(),
                    },
                    created_at=now,
                ),
            )

        return action, True
