"""Survey models for MongoDB."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class SurveyStatus(str, Enum):
    """Survey lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SCHEDULED = "scheduled"
    CLOSED = "closed"


class QuestionType(str, Enum):
    """Question type, drives metric extraction."""

    TEXT = "text"
    RATING = "rating"
    SCALE = "scale"
    LIKERT = "likert"
    NPS = "nps"
    NUMERIC = "numeric"
    MCQ = "mcq"
    CHECKBOX = "checkbox"
    DATE = "date"
    YES_NO = "yesNo"


RATING_QUESTION_TYPES = {QuestionType.RATING.value, QuestionType.SCALE.value, QuestionType.LIKERT.value}


class Question(BaseModel):
    """Survey question snapshot."""

    id: str
    type: QuestionType
    text: str = ""
    required: bool = False
    options: list[str] | None = None

    class Config:
        use_enum_values = True


class SurveySchedule(BaseModel):
    """Window during which a survey accepts responses."""

    start_date: datetime | None = None
    end_date: datetime | None = None
    timezone: str = "UTC"


class Survey(BaseModel):
    """Survey document model for MongoDB.

    Collection: surveys
    """

    id: str | None = Field(None, alias="_id")
    tenant_id: str

    title: str
    description: str | None = None
    status: SurveyStatus = SurveyStatus.DRAFT
    questions: list[Question] = Field(default_factory=list)
    schedule: SurveySchedule = Field(default_factory=SurveySchedule)
    deleted: bool = False

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
        use_enum_values = True

    def is_within_schedule(self, now: datetime) -> bool:
        """Check now falls in [start_date, end_date)."""
        if self.schedule.start_date and now < self.schedule.start_date:
            return False
        if self.schedule.end_date and now >= self.schedule.end_date:
            return False
        return True

    def accepts_responses(self, now: datetime) -> bool:
        """Check the survey is active, not deleted and inside its schedule."""
        return (
            self.status == SurveyStatus.ACTIVE
            and not self.deleted
            and self.is_within_schedule(now)
        )

    def question_map(self) -> dict[str, Question]:
        """Questions keyed by id."""
        return {question.id: question for question in self.questions}
