"""Assignment rule models for MongoDB."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class AssignmentMode(str, Enum):
    """How a matched rule picks the assignee."""

    SINGLE_OWNER = "single_owner"
    ROUND_ROBIN = "round_robin"
    LEAST_LOAD = "least_load"


class ConditionOperator(str, Enum):
    """Condition comparison operator."""

    EQ = "eq"
    CONTAINS = "contains"


class AssignmentCondition(BaseModel):
    """Compares one action field against a value."""

    field: str
    operator: str = ConditionOperator.EQ.value
    value: str


class AssignmentTarget(BaseModel):
    """Who a rule assigns to.

    ``mode`` is kept as a plain string so a rule stored with an unknown
    mode can still be loaded and skipped.
    """

    mode: str
    target_user: str | None = None
    target_team: str | None = None
    team_members: list[str] = Field(default_factory=list)


class AssignmentRule(BaseModel):
    """Assignment rule document model for MongoDB.

    Collection: assignment_rules
    """

    id: str | None = Field(None, alias="_id")
    tenant_id: str

    name: str
    priority: int = 0
    conditions: list[AssignmentCondition] = Field(default_factory=list)
    assignment: AssignmentTarget
    priority_override: str | None = None
    is_active: bool = True
    last_assigned_index: int = -1

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
        use_enum_values = True
