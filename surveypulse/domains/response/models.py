"""Survey response models for MongoDB."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from surveypulse.domains.analysis.metrics import QuantitativeMetrics


class Sentiment(str, Enum):
    """Overall sentiment of a response."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Urgency(str, Enum):
    """How quickly a response needs follow-up."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Answer(BaseModel):
    """A single answer, kept in submission order."""

    question_id: str
    answer: Any = None


class ResponseMetadata(BaseModel):
    """Request-derived metadata."""

    device: str = "desktop"
    browser: str = "unknown"
    os: str = "unknown"
    location: str | None = None
    user_agent: str | None = None


class Classification(BaseModel):
    """Complaint / praise / suggestion flags."""

    is_complaint: bool = False
    is_praise: bool = False
    is_suggestion: bool = False


class ResponseAnalysis(BaseModel):
    """Analysis block, written once per response by the pipeline."""

    sentiment: Sentiment = Sentiment.NEUTRAL
    sentiment_score: float = Field(0.0, ge=-1, le=1)
    urgency: Urgency = Urgency.LOW
    emotions: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    classification: Classification = Field(default_factory=Classification)
    summary: str = ""
    should_generate_action: bool = False
    nps_category: str | None = None
    rating_category: str | None = None
    flagged_for_review: bool = False
    fallback_reason: str | None = None
    metrics: QuantitativeMetrics | None = None
    analyzed_at: datetime | None = None

    class Config:
        use_enum_values = True


class Response(BaseModel):
    """Survey response document model for MongoDB.

    Collection: responses
    """

    id: str | None = Field(None, alias="_id")
    tenant_id: str
    survey_id: str

    invite_id: str | None = None
    contact_id: str | None = None
    user_id: str | None = None
    email: str | None = None

    answers: list[Answer] = Field(default_factory=list)
    review: str | None = None
    rating: float | None = Field(None, ge=1, le=5)
    score: float | None = Field(None, ge=0, le=10)
    is_anonymous: bool = False

    ip: str | None = None
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)
    completion_time: float | None = None
    started_at: datetime | None = None
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    analysis: ResponseAnalysis | None = None
    stats_synced_at: datetime | None = None

    class Config:
        populate_by_name = True
        use_enum_values = True

    def text_content(self) -> str:
        """Review plus every free-text answer, joined for keyword matching."""
        parts = [self.review] if self.review else []
        for answer in self.answers:
            if isinstance(answer.answer, str):
                parts.append(answer.answer)
        return " ".join(parts)
