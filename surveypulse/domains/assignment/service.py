"""Assignment rule service - managing a tenant's assignment rules."""

import logging

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.exceptions import ForbiddenError, NotFoundError
from surveypulse.core.logging import log_context
from surveypulse.domains.assignment.models import (
    AssignmentCondition,
    AssignmentRule,
    AssignmentTarget,
)
from surveypulse.domains.assignment.schemas import AssignmentRuleCreate
from surveypulse.domains.repositories import TenantRepositories

logger = logging.getLogger(__name__)


class AssignmentRuleService:
    """Assignment rule management service."""

    def __init__(self, repositories: TenantRepositories, clock: Clock = system_clock):
        self._repos = repositories
        self._clock = clock

    async def create_rule(self, data: AssignmentRuleCreate) -> AssignmentRule:
        """
        Create a rule.

        Raises:
            ForbiddenError: If a target user is not a member of the tenant
        """
        target = data.assignment
        for user_id in [target.target_user, *target.team_members]:
            if user_id and not await self._repos.members.is_member(user_id):
                raise ForbiddenError(
                    "Assignee is not a member of this tenant", {"user_id": user_id}
                )

        rule = await self._repos.assignment_rules.create(
            AssignmentRule(
                tenant_id=self._repos.tenant_id,
                name=data.name,
                priority=data.priority,
                conditions=[
                    AssignmentCondition(**condition.model_dump())
                    for condition in data.conditions
                ],
                assignment=AssignmentTarget(**target.model_dump()),
                priority_override=data.priority_override,
                is_active=data.is_active,
                created_at=self._clock.now(),
            )
        )
        logger.info(
            f"Assignment rule '{rule.name}' created ({target.mode})",
            extra=log_context(tenant_id=self._repos.tenant_id),
        )
        return rule

    async def list_rules(self) -> list[AssignmentRule]:
        """List rules in evaluation order."""
        return await self._repos.assignment_rules.list_rules()

    async def deactivate_rule(self, rule_id: str) -> AssignmentRule:
        """Stop a rule from matching new actions."""
        if not await self._repos.assignment_rules.set_active(rule_id, False):
            raise NotFoundError("Assignment rule", rule_id)
        return await self._repos.assignment_rules.get_by_id(rule_id)
