"""Audience segment models for MongoDB."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class AudienceSegment(BaseModel):
    """Audience segment document model for MongoDB.

    Collection: audience_segments

    ``compiled_query`` is the serialized query produced when the filters
    were last saved; previews and counts always recompile against the
    current time.
    """

    id: str | None = Field(None, alias="_id")
    tenant_id: str

    name: str
    description: str = ""
    filters: dict[str, Any] = Field(default_factory=dict)
    compiled_query: str = "{}"
    is_system: bool = False
    system_key: str | None = None

    created_by: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True


# Built-in segments created for every tenant
SYSTEM_SEGMENTS: list[dict[str, Any]] = [
    {
        "key": "recentResponders",
        "name": "Responded in last 30 days",
        "description": "Contacts who submitted a survey response in the last month",
        "filters": {"respondedLastDays": 30},
    },
    {
        "key": "recentlyActive",
        "name": "Active in last 7 days",
        "description": "Contacts with any activity in the last week",
        "filters": {"activeDays": 7},
    },
    {
        "key": "dormant",
        "name": "Dormant (90+ days)",
        "description": "No activity in the last 90 days",
        "filters": {"inactiveDays": 90},
    },
    {
        "key": "promoters",
        "name": "Promoters (NPS 9-10)",
        "description": "Highly satisfied customers likely to recommend",
        "filters": {"npsCategory": "promoter"},
    },
    {
        "key": "passives",
        "name": "Passives (NPS 7-8)",
        "description": "Satisfied but not enthusiastic customers",
        "filters": {"npsCategory": "passive"},
    },
    {
        "key": "detractors",
        "name": "Detractors (NPS 0-6)",
        "description": "Unhappy customers who may damage the brand",
        "filters": {"npsCategory": "detractor"},
    },
    {
        "key": "atRisk",
        "name": "At-Risk Customers",
        "description": "Detractors without activity in 30 days",
        "filters": {"npsCategory": "detractor", "inactiveDays": 30},
    },
    {
        "key": "invitedNotResponded",
        "name": "Invited but not responded",
        "description": "Contacts who received invitations but never responded",
        "filters": {"invitedButNotResponded": True},
    },
    {
        "key": "highEngagement",
        "name": "High Engagement",
        "description": "Contacts who have responded to 3+ surveys",
        "filters": {"minResponses": 3},
    },
    {
        "key": "newContacts",
        "name": "New Contacts (7 days)",
        "description": "Contacts added in the last week",
        "filters": {"createdLastDays": 7},
    },
]
