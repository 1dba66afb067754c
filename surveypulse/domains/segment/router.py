"""Audience segment API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from surveypulse.core.clock import Clock
from surveypulse.core.config import settings
from surveypulse.db.redis import RedisCache
from surveypulse.dependencies.auth import CurrentUser, ManagerOnly
from surveypulse.dependencies.services import TenantRepos, get_clock, get_segment_cache
from surveypulse.domains.contact.models import Contact
from surveypulse.domains.segment.models import AudienceSegment
from surveypulse.domains.segment.schemas import (
    ContactSummary,
    FilterPreviewRequest,
    SegmentCountResponse,
    SegmentCreate,
    SegmentListResponse,
    SegmentPreviewResponse,
    SegmentResponse,
    SegmentUpdate,
)
from surveypulse.domains.segment.service import SegmentService

router = APIRouter(prefix="/segments")


def get_segment_service(
    repos: TenantRepos,
    cache: Annotated[RedisCache, Depends(get_segment_cache)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> SegmentService:
    """Get segment service for the caller's tenant."""
    return SegmentService(
        segment_repository=repos.segments,
        contact_repository=repos.contacts,
        count_cache=cache,
        tenant_id=repos.tenant_id,
        cache_ttl=settings.segment_cache_ttl_seconds,
        clock=clock,
    )


Service = Annotated[SegmentService, Depends(get_segment_service)]
Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=100)]


def _segment_response(segment: AudienceSegment) -> SegmentResponse:
    return SegmentResponse(
        id=segment.id,
        name=segment.name,
        description=segment.description,
        filters=segment.filters,
        is_system=segment.is_system,
        created_at=segment.created_at,
        updated_at=segment.updated_at,
    )


def _preview_response(
    contacts: list[Contact], total: int, page: int, limit: int
) -> SegmentPreviewResponse:
    return SegmentPreviewResponse(
        items=[
            ContactSummary(
                id=contact.id,
                email=contact.email,
                name=contact.name,
                company=contact.company,
                status=contact.status,
                tags=contact.tags,
            )
            for contact in contacts
        ],
        total=total,
        page=page,
        limit=limit,
    )


@router.post(
    "",
    response_model=SegmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create segment",
)
async def create_segment(data: SegmentCreate, user: ManagerOnly, service: Service):
    """Create an audience segment."""
    segment = await service.create_segment(data, user["user_id"])
    return _segment_response(segment)


@router.get(
    "",
    response_model=SegmentListResponse,
    summary="List segments",
    description="List segments, built-in segments first.",
)
async def list_segments(user: CurrentUser, service: Service):
    """List audience segments."""
    segments = await service.list_segments()
    return SegmentListResponse(
        items=[_segment_response(segment) for segment in segments],
        total=len(segments),
    )


@router.post(
    "/preview",
    response_model=SegmentPreviewResponse,
    summary="Preview filters",
    description="Run filters without saving them.",
)
async def preview_filters(
    data: FilterPreviewRequest,
    user: CurrentUser,
    service: Service,
    page: Page = 1,
    limit: Limit = 10,
):
    """Preview contacts matching unsaved filters."""
    contacts, total = await service.preview_filters(data.filters, page=page, limit=limit)
    return _preview_response(contacts, total, page, limit)


@router.get("/{segment_id}", response_model=SegmentResponse, summary="Get segment")
async def get_segment(segment_id: str, user: CurrentUser, service: Service):
    """Get segment by ID."""
    segment = await service.get_segment(segment_id)
    return _segment_response(segment)


@router.put("/{segment_id}", response_model=SegmentResponse, summary="Update segment")
async def update_segment(
    segment_id: str, data: SegmentUpdate, user: ManagerOnly, service: Service
):
    """Update a user-defined segment."""
    segment = await service.update_segment(segment_id, data)
    return _segment_response(segment)


@router.delete(
    "/{segment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete segment",
)
async def delete_segment(segment_id: str, user: ManagerOnly, service: Service):
    """Delete a user-defined segment."""
    await service.delete_segment(segment_id)


@router.get(
    "/{segment_id}/preview",
    response_model=SegmentPreviewResponse,
    summary="Preview segment",
)
async def preview_segment(
    segment_id: str,
    user: CurrentUser,
    service: Service,
    page: Page = 1,
    limit: Limit = 10,
):
    """Preview contacts in a saved segment."""
    contacts, total = await service.preview_segment(segment_id, page=page, limit=limit)
    return _preview_response(contacts, total, page, limit)


@router.get(
    "/{segment_id}/count",
    response_model=SegmentCountResponse,
    summary="Count segment",
    description="Count contacts in a segment. Counts are cached briefly.",
)
async def count_segment(segment_id: str, user: CurrentUser, service: Service):
    """Count contacts in a segment."""
    count, cached = await service.count_segment(segment_id)
    return SegmentCountResponse(segment_id=segment_id, count=count, cached=cached)
