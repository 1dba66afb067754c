"""Action domain service - action management for dashboard users."""

import logging
from dataclasses import dataclass
from typing import Any

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InsufficientPermissionsError,
    NotFoundError,
)
from surveypulse.core.logging import log_context
from surveypulse.domains.action.models import (
    Action,
    ActionSource,
    ActionStatus,
    AssignmentHistoryEntry,
)
from surveypulse.domains.action.schemas import (
    ActionAssign,
    ActionCreate,
    ActionUpdate,
    BulkActionUpdate,
)
from surveypulse.domains.action.sla import SlaPolicy
from surveypulse.domains.action.writer import ActionDraft
from surveypulse.domains.alert.detector import AlertDetector
from surveypulse.domains.member.models import is_manager
from surveypulse.domains.repositories import TenantRepositories
from surveypulse.domains.rules.catalog import apply_overrides
from surveypulse.domains.rules.evaluator import evaluate_rules, resolve_priority
from surveypulse.domains.rules.models import Rule
from surveypulse.integrations.notifications import (
    NotificationEvent,
    NotificationSink,
    publish_safely,
)
from surveypulse.pipeline.processor import build_action_writer, draft_from_candidate

logger = logging.getLogger(__name__)


@dataclass
class ActionFilters:
    """List filters; None means any."""

    status: str | None = None
    priority: str | None = None
    assigned_to: str | None = None
    category: str | None = None
    source: str | None = None

    def as_query(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "priority": self.priority,
            "assigned_to": self.assigned_to,
            "category": self.category,
            "source": self.source,
        }


class ActionService:
    """Action management service."""

    def __init__(
        self,
        repositories: TenantRepositories,
        catalog: list[Rule],
        sla_policy: SlaPolicy,
        notifications: NotificationSink | None,
        alert_window_hours: int = 24,
        alert_threshold: int = 3,
        clock: Clock = system_clock,
    ):
        self._repos = repositories
        self._actions = repositories.actions
        self._catalog = catalog
        self._sla = sla_policy
        self._notifications = notifications
        self._alert_window_hours = alert_window_hours
        self._alert_threshold = alert_threshold
        self._clock = clock

    @property
    def _tenant_id(self) -> str:
        return self._repos.tenant_id

    async def get_action(self, action_id: str) -> Action:
        """Get action by ID."""
        action = await self._actions.get_by_id(action_id)
        if not action:
            raise NotFoundError("Action", action_id)
        return action

    async def list_actions(
        self,
        filters: ActionFilters,
        limit: int = 20,
        cursor: str | None = None,
    ) -> tuple[list[Action], str | None, bool]:
        """List actions newest first."""
        return await self._actions.list_actions(filters.as_query(), limit, cursor)

    async def create_action(self, data: ActionCreate, user: dict) -> Action:
        """
        Create an action by hand.

        Without an explicit assignee the tenant's assignment rules decide.
        """
        if data.assigned_to:
            await self._require_member(data.assigned_to)

        writer = build_action_writer(self._repos, self._sla, self._notifications, self._clock)
        action, _ = await writer.create(
            ActionDraft(
                title=data.title,
                description=data.description,
                priority=data.priority,
                category=data.category,
                tags=data.tags,
                source=ActionSource.MANUAL.value,
                response_id=data.response_id,
                feedback_id=data.feedback_id,
                survey_id=data.survey_id,
                assigned_to=data.assigned_to,
                assigned_to_team=data.assigned_to_team,
                created_by=user["user_id"],
            )
        )
        return action

    async def update_action(self, action_id: str, data: ActionUpdate, user: dict) -> Action:
        """
        Update the editable fields of an action.

        Managers may update any action; members only the ones assigned to
        them. Resolved actions are final.
        """
        action = await self.get_action(action_id)
        if not is_manager(user["role"]) and action.assigned_to != user["user_id"]:
            raise InsufficientPermissionsError("Only the assignee or a manager can update this action")
        if action.is_resolved:
            raise ConflictError("Resolved actions cannot be changed", {"action_id": action_id})

        fields = data.model_dump(exclude_unset=True, exclude_none=True)
        if "tags" in fields:
            fields["tags"] = list(dict.fromkeys(fields["tags"]))
        fields.update(self._completion_fields(fields.get("status"), user["user_id"]))
        fields["updated_at"] = self._clock.now()

        updated = await self._actions.update(action_id, fields)
        if updated is None:
            raise ConflictError("Action was resolved concurrently", {"action_id": action_id})
        return updated

    async def delete_action(self, action_id: str) -> None:
        """Soft delete an action."""
        deleted = await self._actions.soft_delete(action_id, self._clock.now())
        if not deleted:
            raise NotFoundError("Action", action_id)
        logger.info(
            "Action deleted",
            extra=log_context(tenant_id=self._tenant_id, action_id=action_id),
        )

    async def assign_action(self, action_id: str, data: ActionAssign, user: dict) -> Action:
        """
        Reassign an action by hand.

        Manual assignment always leaves ``auto_assigned`` false.

        Raises:
            ForbiddenError: If the assignee is not a member of the tenant
        """
        action = await self.get_action(action_id)
        if action.is_resolved:
            raise ConflictError("Resolved actions cannot be reassigned", {"action_id": action_id})
        await self._require_member(data.assigned_to)

        now = self._clock.now()
        updated = await self._actions.update(
            action_id,
            {
                "assigned_to": data.assigned_to,
                "assigned_to_team": data.assigned_to_team,
                "auto_assigned": False,
                "updated_at": now,
            },
            history_entry=AssignmentHistoryEntry(
                from_user=action.assigned_to,
                to_user=data.assigned_to,
                to_team=data.assigned_to_team,
                by=user["user_id"],
                at=now,
                auto=False,
                note=data.note or "Manually reassigned",
            ),
        )
        if updated is None:
            raise ConflictError("Action was resolved concurrently", {"action_id": action_id})

        await self._notify_assignee(updated)
        return updated

    async def bulk_update(self, data: BulkActionUpdate, user: dict) -> list[Action]:
        """
        Apply status, priority or assignee to several actions.

        Every id must exist and none may be resolved; nothing is written
        otherwise.
        """
        actions: list[Action] = []
        for action_id in dict.fromkeys(data.action_ids):
            actions.append(await self.get_action(action_id))

        resolved = [action.id for action in actions if action.is_resolved]
        if resolved:
            raise ConflictError("Resolved actions cannot be changed", {"action_ids": resolved})
        if data.assigned_to:
            await self._require_member(data.assigned_to)

        now = self._clock.now()
        fields: dict[str, Any] = {"updated_at": now}
        if data.priority:
            fields["priority"] = data.priority
        if data.status:
            fields["status"] = data.status
            fields.update(self._completion_fields(data.status, user["user_id"]))
        if data.assigned_to:
            fields["assigned_to"] = data.assigned_to
            fields["auto_assigned"] = False

        updated: list[Action] = []
        for action in actions:
            history = None
            if data.assigned_to and data.assigned_to != action.assigned_to:
                history = AssignmentHistoryEntry(
                    from_user=action.assigned_to,
                    to_user=data.assigned_to,
                    by=user["user_id"],
                    at=now,
                    auto=False,
                    note="Bulk reassigned",
                )
            result = await self._actions.update(action.id, fields, history_entry=history)
            if result is None:
                logger.warning(
                    "Action changed during bulk update, skipped",
                    extra=log_context(tenant_id=self._tenant_id, action_id=action.id),
                )
                continue
            updated.append(result)
            if history is not None:
                await self._notify_assignee(result)

        return updated

    async def generate_from_feedback(
        self, response_ids: list[str], user: dict
    ) -> tuple[list[Action], list[str]]:
        """
        Create actions for analyzed responses through the rule catalog.

        Responses that are unknown, not analyzed yet, already have an action
        or match no rule are skipped.

        Returns:
            Tuple of (created actions, skipped response ids)
        """
        rules = apply_overrides(self._catalog, await self._repos.rule_overrides.get_overrides())
        responses = {
            response.id: response
            for response in await self._repos.responses.get_many(list(response_ids))
        }
        writer = build_action_writer(self._repos, self._sla, self._notifications, self._clock)

        created: list[Action] = []
        skipped: list[str] = []
        for response_id in dict.fromkeys(response_ids):
            response = responses.get(response_id)
            if not response or not response.analysis or not response.analysis.analyzed_at:
                skipped.append(response_id)
                continue
            if await self._actions.get_by_response_id(response_id):
                skipped.append(response_id)
                continue

            analysis = response.analysis
            decision = resolve_priority(evaluate_rules(rules, analysis, response), analysis, response)
            if not decision.primary:
                skipped.append(response_id)
                continue

            action, was_created = await writer.create(
                draft_from_candidate(
                    decision.primary,
                    response,
                    analysis,
                    ActionSource.SURVEY_FEEDBACK.value,
                    created_by=user["user_id"],
                )
            )
            if was_created:
                created.append(action)
            else:
                skipped.append(response_id)

        detector = AlertDetector(self._actions, self._notifications, self._tenant_id, self._clock)
        for category in dict.fromkeys(action.category for action in created):
            await detector.check_repeated_complaints(
                hours=self._alert_window_hours,
                threshold=self._alert_threshold,
                category=category,
            )

        logger.info(
            f"Generated {len(created)} action(s) from feedback, skipped {len(skipped)}",
            extra=log_context(tenant_id=self._tenant_id),
        )
        return created, skipped

    def _completion_fields(self, status: str | None, user_id: str) -> dict[str, Any]:
        if status != ActionStatus.RESOLVED.value:
            return {}
        return {"completed_at": self._clock.now(), "completed_by": user_id}

    async def _require_member(self, user_id: str) -> None:
        if not await self._repos.members.is_member(user_id):
            raise ForbiddenError(
                "Assignee is not a member of this tenant", {"user_id": user_id}
            )

    async def _notify_assignee(self, action: Action) -> None:
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
                created_at=self._clock.now(),
            ),
        )
