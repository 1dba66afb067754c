"""Contact models for MongoDB."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ContactStatus(str, Enum):
    """Contact status enum."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    BLOCKED = "Blocked"


class SurveyStats(BaseModel):
    """Per-contact survey aggregates, written only by the stats aggregator.

    ``nps_total``/``nps_count`` and ``rating_total``/``rating_count`` hold the
    running sums behind the averages so they stay equal to the arithmetic mean
    of every score seen.
    """

    invited_count: int = 0
    responded_count: int = 0
    last_invited_date: datetime | None = None
    last_response_date: datetime | None = None

    latest_nps_score: float | None = None
    avg_nps_score: float | None = None
    nps_total: float = 0
    nps_count: int = 0
    nps_category: str | None = None

    latest_rating: float | None = None
    avg_rating: float | None = None
    rating_total: float = 0
    rating_count: int = 0


class ContactEnrichment(BaseModel):
    """Location and company data attached to a contact."""

    country: str | None = None
    city: str | None = None
    region: str | None = None
    domain: str | None = None


class Contact(BaseModel):
    """Contact document model for MongoDB.

    Collection: contacts
    """

    id: str | None = Field(None, alias="_id")
    tenant_id: str

    name: str | None = None
    email: str
    phone: str | None = None
    company: str | None = None

    tags: list[str] = Field(default_factory=list)
    auto_tags: list[str] = Field(default_factory=list)
    category_ids: list[str] = Field(default_factory=list)
    status: ContactStatus = ContactStatus.ACTIVE
    enrichment: ContactEnrichment = Field(default_factory=ContactEnrichment)

    last_activity: datetime | None = None
    survey_stats: SurveyStats = Field(default_factory=SurveyStats)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
        use_enum_values = True
