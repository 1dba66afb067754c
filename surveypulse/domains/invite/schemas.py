"""Invite domain schemas - request/response models."""

from datetime import datetime

from pydantic import Field, model_validator

from surveypulse.core.schemas import ApiModel, ApiRequest


class InviteCreate(ApiRequest):
    """Schema for issuing an invite. Exactly one of user_id or email/phone."""

    user_id: str | None = None
    name: str | None = Field(None, max_length=200)
    email: str | None = Field(None, max_length=254)
    phone: str | None = Field(None, max_length=32)

    @model_validator(mode="after")
    def check_recipient(self) -> "InviteCreate":
        has_contact = bool(self.email or self.phone)
        if bool(self.user_id) == has_contact:
            raise ValueError("Provide either userId or a contact email/phone")
        return self


class InviteResponse(ApiModel):
    """Schema for an issued invite."""

    id: str
    survey_id: str
    token: str
    status: str
    user_id: str | None = None
    email: str | None = None
    expires_at: datetime
    max_attempts: int
    created_at: datetime
