"""Assignment rule schemas - request/response models."""

from datetime import datetime

from pydantic import Field, model_validator

from surveypulse.core.schemas import ApiModel, ApiRequest
from surveypulse.domains.action.models import ActionPriority
from surveypulse.domains.assignment.models import (
    AssignmentMode,
    AssignmentRule,
    ConditionOperator,
)


class ConditionIn(ApiRequest):
    """Condition on an action field."""

    field: str = Field(..., min_length=1)
    operator: ConditionOperator = ConditionOperator.EQ
    value: str


class AssignmentIn(ApiRequest):
    """Assignment target."""

    mode: AssignmentMode
    target_user: str | None = None
    target_team: str | None = None
    team_members: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_target(self) -> "AssignmentIn":
        if self.mode == AssignmentMode.SINGLE_OWNER.value and not self.target_user:
            raise ValueError("single_owner rules need targetUser")
        if self.mode != AssignmentMode.SINGLE_OWNER.value and not self.team_members:
            raise ValueError(f"{self.mode} rules need teamMembers")
        return self


class AssignmentRuleCreate(ApiRequest):
    """Schema for creating an assignment rule."""

    name: str = Field(..., min_length=1, max_length=120)
    priority: int = 0
    conditions: list[ConditionIn] = Field(default_factory=list)
    assignment: AssignmentIn
    priority_override: ActionPriority | None = None
    is_active: bool = True


class AssignmentRuleResponse(ApiModel):
    """Schema for assignment rule response."""

    id: str
    name: str
    priority: int
    conditions: list[dict]
    assignment: dict
    priority_override: str | None = None
    is_active: bool
    last_assigned_index: int
    created_at: datetime

    @classmethod
    def from_rule(cls, rule: AssignmentRule) -> "AssignmentRuleResponse":
        return cls(
            id=rule.id,
            name=rule.name,
            priority=rule.priority,
            conditions=[condition.model_dump() for condition in rule.conditions],
            assignment=rule.assignment.model_dump(),
            priority_override=rule.priority_override,
            is_active=rule.is_active,
            last_assigned_index=rule.last_assigned_index,
            created_at=rule.created_at,
        )


class AssignmentRuleListResponse(ApiModel):
    """Schema for assignment rule list response."""

    items: list[AssignmentRuleResponse]
    total: int
