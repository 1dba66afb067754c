"""Action domain schemas - request/response models."""

from datetime import datetime
from typing import Any

from pydantic import Field

from surveypulse.core.schemas import ApiModel, ApiRequest
from surveypulse.domains.action.models import (
    Action,
    ActionPriority,
    ActionStatus,
)


class ActionCreate(ApiRequest):
    """Schema for creating an action by hand."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=5000)
    priority: ActionPriority = ActionPriority.MEDIUM
    category: str = Field("General", max_length=100)
    tags: list[str] = Field(default_factory=list)
    response_id: str | None = None
    feedback_id: str | None = None
    survey_id: str | None = None
    assigned_to: str | None = None
    assigned_to_team: str | None = None


class ActionUpdate(ApiRequest):
    """Schema for updating an action. Only these fields can change."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    priority: ActionPriority | None = None
    status: ActionStatus | None = None
    category: str | None = Field(None, max_length=100)
    tags: list[str] | None = None


class ActionAssign(ApiRequest):
    """Schema for reassigning an action."""

    assigned_to: str = Field(..., min_length=1)
    assigned_to_team: str | None = None
    note: str | None = Field(None, max_length=500)


class BulkActionUpdate(ApiRequest):
    """Schema for updating several actions at once."""

    action_ids: list[str] = Field(..., min_length=1, max_length=100)
    status: ActionStatus | None = None
    priority: ActionPriority | None = None
    assigned_to: str | None = None


class GenerateFromFeedback(ApiRequest):
    """Schema for turning analyzed responses into actions."""

    response_ids: list[str] = Field(..., min_length=1, max_length=100)


class HistoryEntryResponse(ApiModel):
    """Assignment history entry."""

    from_user: str | None = None
    to_user: str | None = None
    to_team: str | None = None
    by: str | None = None
    at: datetime
    auto: bool
    note: str | None = None
    kind: str


class SlaResponse(ApiModel):
    """SLA block of an action."""

    target_resolution_time: datetime
    reminders_sent: int
    next_reminder_at: datetime | None = None
    is_breached: bool


class ActionResponse(ApiModel):
    """Schema for action response."""

    id: str
    title: str
    description: str
    priority: str
    status: str
    source: str
    category: str
    tags: list[str]
    feedback_id: str | None = None
    response_id: str | None = None
    survey_id: str | None = None
    metadata: dict[str, Any]
    assigned_to: str | None = None
    assigned_to_team: str | None = None
    auto_assigned: bool
    assignment_history: list[HistoryEntryResponse]
    due_date: datetime
    sla: SlaResponse
    completed_at: datetime | None = None
    completed_by: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_action(cls, action: Action) -> "ActionResponse":
        return cls(
            id=action.id,
            title=action.title,
            description=action.description,
            priority=action.priority,
            status=action.status,
            source=action.source,
            category=action.category,
            tags=action.tags,
            feedback_id=action.feedback_id,
            response_id=action.response_id,
            survey_id=action.survey_id,
            metadata=action.metadata,
            assigned_to=action.assigned_to,
            assigned_to_team=action.assigned_to_team,
            auto_assigned=action.auto_assigned,
            assignment_history=[
                HistoryEntryResponse(**entry.model_dump())
                for entry in action.assignment_history
            ],
            due_date=action.due_date,
            sla=SlaResponse(**action.sla.model_dump()),
            completed_at=action.completed_at,
            completed_by=action.completed_by,
            created_by=action.created_by,
            created_at=action.created_at,
            updated_at=action.updated_at,
        )


class ActionListResponse(ApiModel):
    """Paginated action list response."""

    items: list[ActionResponse]
    has_more: bool
    next_cursor: str | None = None


class BulkUpdateResult(ApiModel):
    """Outcome of a bulk update."""

    updated: int
    items: list[ActionResponse]


class GenerateResult(ApiModel):
    """Outcome of generating actions from feedback."""

    created: list[ActionResponse]
    skipped: list[str]
