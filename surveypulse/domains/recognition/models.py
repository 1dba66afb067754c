"""Recognition models for MongoDB."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class Recognition(BaseModel):
    """Positive feedback worth celebrating, kept instead of an action.

    Collection: recognitions
    """

    id: str | None = Field(None, alias="_id")
    tenant_id: str
    response_id: str
    survey_id: str
    contact_id: str | None = None
    rules: list[str] = Field(default_factory=list)
    summary: str = ""
    themes: list[str] = Field(default_factory=list)
    sentiment_score: float = 0.0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
