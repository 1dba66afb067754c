"""SLA policy - due dates, reminders and the escalation ladder."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from surveypulse.core.config import Settings
from surveypulse.domains.action.models import ActionPriority, SlaInfo

# Each priority escalates one step; high is the ceiling
ESCALATION_PATH: dict[str, str] = {
    ActionPriority.LONG_TERM.value: ActionPriority.LOW.value,
    ActionPriority.LOW.value: ActionPriority.MEDIUM.value,
    ActionPriority.MEDIUM.value: ActionPriority.HIGH.value,
}


@dataclass
class SlaPolicy:
    """Resolution and reminder windows per priority, in hours."""

    due_hours: dict[str, int] = field(
        default_factory=lambda: {"high": 4, "medium": 24, "low": 72, "long-term": 720}
    )
    default_due_hours: int = 48
    reminder_hours: dict[str, int] = field(
        default_factory=lambda: {"high": 4, "medium": 24, "low": 48}
    )
    default_reminder_hours: int = 24

    @classmethod
    def from_settings(cls, settings: Settings) -> "SlaPolicy":
        return cls(
            due_hours=dict(settings.sla_due_hours),
            default_due_hours=settings.sla_default_due_hours,
            reminder_hours=dict(settings.sla_reminder_hours),
            default_reminder_hours=settings.sla_default_reminder_hours,
        )

    def due_date_for(self, priority: str, start: datetime) -> datetime:
        hours = self.due_hours.get(priority, self.default_due_hours)
        return start + timedelta(hours=hours)

    def next_reminder_for(self, priority: str, start: datetime) -> datetime:
        hours = self.reminder_hours.get(priority, self.default_reminder_hours)
        return start + timedelta(hours=hours)

    def build(self, priority: str, start: datetime) -> tuple[datetime, SlaInfo]:
        """Due date and a fresh SLA block for an action created at ``start``."""
        due_date = self.due_date_for(priority, start)
        return due_date, SlaInfo(
            target_resolution_time=due_date,
            reminders_sent=0,
            next_reminder_at=self.next_reminder_for(priority, start),
            is_breached=False,
        )


def next_priority(priority: str) -> str:
    """One step up the escalation ladder."""
    return ESCALATION_PATH.get(priority, ActionPriority.HIGH.value)
