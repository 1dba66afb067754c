"""Assignment engine - resolves an action payload to an assignee."""

import logging
from dataclasses import dataclass
from typing import Any

from surveypulse.core.logging import log_context
from surveypulse.domains.action.repository import ActionRepositoryInterface
from surveypulse.domains.assignment.models import (
    AssignmentCondition,
    AssignmentMode,
    AssignmentRule,
    ConditionOperator,
)
from surveypulse.domains.assignment.repository import AssignmentRuleRepositoryInterface

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    """Assignee chosen by a rule."""

    assigned_to: str
    assigned_to_team: str | None
    rule_id: str | None
    rule_name: str
    mode: str
    priority_override: str | None = None

    @property
    def note(self) -> str:
        return f"Auto-assigned by rule '{self.rule_name}' ({self.mode})"


def read_field(payload: dict[str, Any], field: str) -> Any:
    """Read a field from the payload, falling back to its metadata."""
    value = payload.get(field)
    if value is None:
        value = (payload.get("metadata") or {}).get(field)
    return value


def condition_holds(condition: AssignmentCondition, payload: dict[str, Any]) -> bool:
    """Evaluate a single condition."""
    value = read_field(payload, condition.field)
    if value is None:
        return False

    if condition.operator == ConditionOperator.EQ.value:
        return str(value) == condition.value
    if condition.operator == ConditionOperator.CONTAINS.value:
        if isinstance(value, list):
            return any(condition.value in str(item) for item in value)
        return condition.value in str(value)
    return False


def rule_matches(rule: AssignmentRule, payload: dict[str, Any]) -> bool:
    """Short-circuit AND over the rule's conditions."""
    return all(condition_holds(condition, payload) for condition in rule.conditions)


class AssignmentEngine:
    """Applies the tenant's assignment rules to new actions."""

    def __init__(
        self,
        rules: AssignmentRuleRepositoryInterface,
        actions: ActionRepositoryInterface,
        tenant_id: str,
    ):
        self._rules = rules
        self._actions = actions
        self._tenant_id = tenant_id

    async def resolve(self, payload: dict[str, Any]) -> AssignmentResult | None:
        """
        Find the first matching active rule and pick an assignee.

        Returns:
            AssignmentResult, or None when no rule matches and the action
            stays unassigned
        """
        for rule in await self._rules.list_rules(active_only=True):
            if not rule_matches(rule, payload):
                continue

            assignee = await self._pick_assignee(rule)
            if assignee is None:
                continue

            return AssignmentResult(
                assigned_to=assignee,
                assigned_to_team=rule.assignment.target_team,
                rule_id=rule.id,
                rule_name=rule.name,
                mode=rule.assignment.mode,
                priority_override=rule.priority_override,
            )
        return None

    async def _pick_assignee(self, rule: AssignmentRule) -> str | None:
        target = rule.assignment
        context = log_context(tenant_id=self._tenant_id)

        if target.mode == AssignmentMode.SINGLE_OWNER.value:
            if not target.target_user:
                logger.warning(f"Rule '{rule.name}' has no target user, skipped", extra=context)
            return target.target_user

        if target.mode not in (AssignmentMode.ROUND_ROBIN.value, AssignmentMode.LEAST_LOAD.value):
            logger.warning(
                f"Rule '{rule.name}' has invalid mode '{target.mode}', skipped", extra=context
            )
            return None

        members = target.team_members
        if not members:
            logger.warning(f"Rule '{rule.name}' has no team members, skipped", extra=context)
            return None

        if target.mode == AssignmentMode.ROUND_ROBIN.value:
            index = await self._rules.next_round_robin_index(rule.id)
            if index is None:
                return None
            return members[index % len(members)]

        return await self._least_loaded(members)

    async def _least_loaded(self, members: list[str]) -> str:
        """Member with the fewest open actions; earlier members win ties."""
        best_member = members[0]
        best_count: int | None = None
        for member in members:
            count = await self._actions.count_open_for_assignee(member)
            if best_count is None or count < best_count:
                best_member, best_count = member, count
        return best_member
