"""Segment domain service - audience segment management."""

import json
import logging
from typing import Any

from surveypulse.core.clock import Clock, system_clock
from surveypulse.core.exceptions import ForbiddenError, NotFoundError
from surveypulse.core.logging import log_context
from surveypulse.db.redis import RedisCache
from surveypulse.domains.contact.models import Contact
from surveypulse.domains.contact.repository import ContactRepositoryInterface
from surveypulse.domains.segment.compiler import compile_filters
from surveypulse.domains.segment.models import SYSTEM_SEGMENTS, AudienceSegment
from surveypulse.domains.segment.repository import SegmentRepositoryInterface
from surveypulse.domains.segment.schemas import SegmentCreate, SegmentUpdate

logger = logging.getLogger(__name__)


class SegmentService:
    """Audience segment management service."""

    def __init__(
        self,
        segment_repository: SegmentRepositoryInterface,
        contact_repository: ContactRepositoryInterface,
        count_cache: RedisCache,
        tenant_id: str,
        cache_ttl: int = 300,
        clock: Clock = system_clock,
    ):
        self._segment_repo = segment_repository
        self._contact_repo = contact_repository
        self._cache = count_cache
        self._tenant_id = tenant_id
        self._cache_ttl = cache_ttl
        self._clock = clock

    def _compile(self, filters: dict[str, Any]) -> dict[str, Any]:
        return compile_filters(filters, now=self._clock.now())

    def _cache_key(self, segment_id: str) -> str:
        return f"{self._tenant_id}:{segment_id}"

    async def ensure_system_segments(self) -> None:
        """Create any built-in segment the tenant does not have yet."""
        existing = await self._segment_repo.list_system_keys()
        for definition in SYSTEM_SEGMENTS:
            if definition["key"] in existing:
                continue
            await self._segment_repo.create(
                AudienceSegment(
                    tenant_id=self._tenant_id,
                    name=definition["name"],
                    description=definition["description"],
                    filters=definition["filters"],
                    compiled_query=json.dumps(self._compile(definition["filters"]), default=str),
                    is_system=True,
                    system_key=definition["key"],
                )
            )

    async def create_segment(self, data: SegmentCreate, user_id: str) -> AudienceSegment:
        """
        Create a segment after compiling its filters.

        Raises:
            SegmentFilterError: If the filters are not valid
            DuplicateError: If the name is taken
        """
        query = self._compile(data.filters)
        now = self._clock.now()
        segment = AudienceSegment(
            tenant_id=self._tenant_id,
            name=data.name,
            description=data.description,
            filters=data.filters,
            compiled_query=json.dumps(query, default=str),
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )
        return await self._segment_repo.create(segment)

    async def list_segments(self) -> list[AudienceSegment]:
        """List segments, creating the built-in ones on first use."""
        await self.ensure_system_segments()
        return await self._segment_repo.list_segments()

    async def get_segment(self, segment_id: str) -> AudienceSegment:
        """
        Get segment by ID.

        Raises:
            NotFoundError: If segment not found
        """
        segment = await self._segment_repo.get_by_id(segment_id)
        if not segment:
            raise NotFoundError("Segment", segment_id)
        return segment

    async def update_segment(self, segment_id: str, data: SegmentUpdate) -> AudienceSegment:
        """
        Update a user-defined segment.

        Raises:
            NotFoundError: If segment not found
            ForbiddenError: If the segment is a system segment
        """
        segment = await self.get_segment(segment_id)
        if segment.is_system:
            raise ForbiddenError("System segments cannot be modified")

        fields = data.model_dump(exclude_unset=True, exclude_none=True)
        if "filters" in fields:
            fields["compiled_query"] = json.dumps(self._compile(fields["filters"]), default=str)
        fields["updated_at"] = self._clock.now()

        updated = await self._segment_repo.update(segment_id, fields)
        if not updated:
            raise NotFoundError("Segment", segment_id)

        await self._cache.delete(self._cache_key(segment_id))
        return updated

    async def delete_segment(self, segment_id: str) -> None:
        """
        Delete a user-defined segment.

        Raises:
            NotFoundError: If segment not found
            ForbiddenError: If the segment is a system segment
        """
        segment = await self.get_segment(segment_id)
        if segment.is_system:
            raise ForbiddenError("System segments cannot be deleted")

        await self._segment_repo.delete(segment_id)
        await self._cache.delete(self._cache_key(segment_id))
        logger.info(f"Segment '{segment.name}' deleted", extra=log_context(tenant_id=self._tenant_id))

    async def preview_filters(
        self, filters: dict[str, Any], page: int = 1, limit: int = 10
    ) -> tuple[list[Contact], int]:
        """Run unsaved filters and return a page of contacts with the total."""
        query = self._compile(filters)
        contacts = await self._contact_repo.find(query, skip=(page - 1) * limit, limit=limit)
        total = await self._contact_repo.count(query)
        return contacts, total

    async def preview_segment(
        self, segment_id: str, page: int = 1, limit: int = 10
    ) -> tuple[list[Contact], int]:
        """Run a saved segment and return a page of contacts with the total."""
        segment = await self.get_segment(segment_id)
        return await self.preview_filters(segment.filters, page=page, limit=limit)

    async def count_segment(self, segment_id: str) -> tuple[int, bool]:
        """
        Count contacts in a segment, using the cache when warm.

        Returns:
            Tuple of (count, served_from_cache)
        """
        cached = await self._cache.get(self._cache_key(segment_id))
        if cached is not None:
            return int(cached), True

        segment = await self.get_segment(segment_id)
        count = await self._contact_repo.count(self._compile(segment.filters))
        await self._cache.set(self._cache_key(segment_id), str(count), ttl=self._cache_ttl)
        return count, False
