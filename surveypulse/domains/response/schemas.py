"""Response domain schemas - request/response models."""

from datetime import datetime
from typing import Any

from pydantic import Field

from surveypulse.core.schemas import ApiModel, ApiRequest


class AnswerIn(ApiRequest):
    """One answer as submitted."""

    question_id: str = Field(..., min_length=1)
    answer: Any = None


class ResponseSubmit(ApiRequest):
    """Schema for submitting a survey response."""

    answers: list[AnswerIn] = Field(..., min_length=1)
    review: str | None = Field(None, max_length=5000)
    rating: float | None = Field(None, ge=1, le=5)
    score: float | None = Field(None, ge=0, le=10)
    is_anonymous: bool = False
    email: str | None = Field(None, max_length=254)
    completion_time: float | None = Field(None, ge=0, description="Seconds spent answering")
    started_at: datetime | None = None


class SubmitResult(ApiModel):
    """Schema for an accepted submission. Analysis is filled in later."""

    id: str = Field(..., alias="_id")
    created_at: datetime
    analysis: dict[str, Any] | None = None


class PublicQuestion(ApiModel):
    """Question as shown to a respondent."""

    id: str
    type: str
    text: str
    required: bool
    options: list[str] | None = None


class PublicSurvey(ApiModel):
    """Survey stripped down to what a respondent needs."""

    id: str
    title: str
    description: str | None = None
    questions: list[PublicQuestion]


class InviteVerification(ApiModel):
    """Schema for a verified invite token."""

    survey: PublicSurvey
    invite_status: str
    expires_at: datetime
