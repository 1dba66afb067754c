"""Survey invite models for MongoDB."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class InviteStatus(str, Enum):
    """Invite status enum. RESPONDED is terminal."""

    SENT = "sent"
    OPENED = "opened"
    RESPONDED = "responded"


class InviteContact(BaseModel):
    """External recipient of an invite."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None


class SurveyInvite(BaseModel):
    """Survey invite document model for MongoDB.

    Collection: survey_invites
    """

    id: str | None = Field(None, alias="_id")
    tenant_id: str
    survey_id: str

    # Exactly one recipient identifier
    user_id: str | None = None
    contact: InviteContact | None = None

    token: str
    status: InviteStatus = InviteStatus.SENT
    opened_at: datetime | None = None
    responded_at: datetime | None = None
    expires_at: datetime
    max_attempts: int = 5
    attempt_count: int = 0

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
        use_enum_values = True

    @model_validator(mode="after")
    def check_single_recipient(self) -> "SurveyInvite":
        if (self.user_id is None) == (self.contact is None):
            raise ValueError("Invite needs exactly one of user_id or contact")
        return self

    @property
    def recipient_email(self) -> str | None:
        return self.contact.email if self.contact else None
