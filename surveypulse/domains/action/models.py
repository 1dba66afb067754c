"""Action models for MongoDB."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ActionPriority(str, Enum):
    """Action priority enum."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    LONG_TERM = "long-term"


class ActionStatus(str, Enum):
    """Action status enum. RESOLVED is terminal."""

    PENDING = "pending"
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class ActionSource(str, Enum):
    """Where an action came from."""

    MANUAL = "manual"
    SURVEY_FEEDBACK = "survey_feedback"
    AI_GENERATED = "ai_generated"


class HistoryKind(str, Enum):
    """Kind of assignment history entry."""

    ASSIGNMENT = "assignment"
    ESCALATION = "escalation"


class AssignmentHistoryEntry(BaseModel):
    """One change of assignee, or an escalation note."""

    from_user: str | None = None
    to_user: str | None = None
    to_team: str | None = None
    by: str | None = None
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    auto: bool = False
    note: str | None = None
    kind: HistoryKind = HistoryKind.ASSIGNMENT

    class Config:
        use_enum_values = True


class SlaInfo(BaseModel):
    """SLA tracking for an action."""

    target_resolution_time: datetime
    reminders_sent: int = 0
    next_reminder_at: datetime | None = None
    is_breached: bool = False


class Action(BaseModel):
    """Action document model for MongoDB.

    Collection: actions
    """

    id: str | None = Field(None, alias="_id")
    tenant_id: str

    title: str
    description: str = ""
    priority: ActionPriority = ActionPriority.MEDIUM
    status: ActionStatus = ActionStatus.PENDING
    source: ActionSource = ActionSource.MANUAL
    category: str = "General"
    tags: list[str] = Field(default_factory=list)

    # Origin
    feedback_id: str | None = None
    response_id: str | None = None
    survey_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Assignment
    assigned_to: str | None = None
    assigned_to_team: str | None = None
    auto_assigned: bool = False
    assignment_history: list[AssignmentHistoryEntry] = Field(default_factory=list)

    # SLA
    due_date: datetime
    sla: SlaInfo

    # Completion
    completed_at: datetime | None = None
    completed_by: str | None = None

    is_deleted: bool = False
    created_by: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
        use_enum_values = True

    @property
    def is_resolved(self) -> bool:
        return self.status == ActionStatus.RESOLVED
