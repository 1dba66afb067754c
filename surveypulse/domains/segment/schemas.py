"""Segment domain schemas - request/response models."""

from datetime import datetime
from typing import Any

from pydantic import Field

from surveypulse.core.schemas import ApiModel, ApiRequest


class SegmentCreate(ApiRequest):
    """Schema for creating a segment."""

    name: str = Field(..., min_length=1, max_length=120)
    description: str = Field("", max_length=500)
    filters: dict[str, Any]


class SegmentUpdate(ApiRequest):
    """Schema for updating a segment."""

    name: str | None = Field(None, min_length=1, max_length=120)
    description: str | None = Field(None, max_length=500)
    filters: dict[str, Any] | None = None


class FilterPreviewRequest(ApiRequest):
    """Schema for previewing unsaved filters."""

    filters: dict[str, Any]


class SegmentResponse(ApiModel):
    """Schema for segment response."""

    id: str
    name: str
    description: str
    filters: dict[str, Any]
    is_system: bool
    count: int | None = None
    created_at: datetime
    updated_at: datetime


class SegmentListResponse(ApiModel):
    """Schema for segment list response."""

    items: list[SegmentResponse]
    total: int


class ContactSummary(ApiModel):
    """Contact as shown in a segment preview."""

    id: str
    email: str
    name: str | None
    company: str | None
    status: str
    tags: list[str]


class SegmentPreviewResponse(ApiModel):
    """Schema for a page of matching contacts."""

    items: list[ContactSummary]
    total: int
    page: int
    limit: int


class SegmentCountResponse(ApiModel):
    """Schema for a segment size."""

    segment_id: str
    count: int
    cached: bool = False
