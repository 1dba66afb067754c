"""Audience segment repository for MongoDB."""

import json
from abc import ABC, abstractmethod
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from surveypulse.core.exceptions import DuplicateError
from surveypulse.db.mongodb import to_object_id
from surveypulse.domains.segment.models import AudienceSegment


class SegmentRepositoryInterface(ABC):
    """Abstract repository interface for audience segments."""

    @abstractmethod
    async def create(self, segment: AudienceSegment) -> AudienceSegment:
        """
        Create a new segment.

        Raises:
            DuplicateError: If the tenant already has a segment with that name
        """
        pass

    @abstractmethod
    async def get_by_id(self, segment_id: str) -> AudienceSegment | None:
        """Get segment by ID."""
        pass

    @abstractmethod
    async def list_segments(self) -> list[AudienceSegment]:
        """List segments, system segments first."""
        pass

    @abstractmethod
    async def list_system_keys(self) -> set[str]:
        """Keys of the system segments already created for the tenant."""
        pass

    @abstractmethod
    async def update(self, segment_id: str, fields: dict[str, Any]) -> AudienceSegment | None:
        """Update a user-defined segment."""
        pass

    @abstractmethod
    async def delete(self, segment_id: str) -> bool:
        """Delete a user-defined segment."""
        pass


def _to_doc(segment: AudienceSegment) -> dict:
    doc = segment.model_dump(by_alias=True, exclude={"id"})
    # Filter keys such as $and cannot be stored as field names
    doc["filters"] = json.dumps(segment.filters)
    return doc


def _to_segment(doc: dict | None) -> AudienceSegment | None:
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    if isinstance(doc.get("filters"), str):
        doc["filters"] = json.loads(doc["filters"])
    return AudienceSegment(**doc)


class MongoSegmentRepository(SegmentRepositoryInterface):
    """MongoDB implementation of segment repository."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["audience_segments"]

    def _id_filter(self, segment_id: str, user_defined: bool = False) -> dict:
        query = {"_id": to_object_id(segment_id), "tenant_id": self._tenant_id}
        if user_defined:
            query["is_system"] = False
        return query

    async def create(self, segment: AudienceSegment) -> AudienceSegment:
        """Create a new segment."""
        try:
            result = await self._collection.insert_one(_to_doc(segment))
        except DuplicateKeyError:
            raise DuplicateError("name", segment.name)
        segment.id = str(result.inserted_id)
        return segment

    async def get_by_id(self, segment_id: str) -> AudienceSegment | None:
        """Get segment by ID."""
        doc = await self._collection.find_one(self._id_filter(segment_id))
        return _to_segment(doc)

    async def list_segments(self) -> list[AudienceSegment]:
        """List segments, system segments first."""
        cursor = self._collection.find({"tenant_id": self._tenant_id}).sort(
            [("is_system", -1), ("name", 1)]
        )
        return [_to_segment(doc) async for doc in cursor]

    async def list_system_keys(self) -> set[str]:
        """Keys of the system segments already created for the tenant."""
        keys = await self._collection.distinct(
            "system_key", {"tenant_id": self._tenant_id, "is_system": True}
        )
        return {key for key in keys if key}

    async def update(self, segment_id: str, fields: dict[str, Any]) -> AudienceSegment | None:
        """Update a user-defined segment."""
        if "filters" in fields:
            fields = {**fields, "filters": json.dumps(fields["filters"])}
        try:
            doc = await self._collection.find_one_and_update(
                self._id_filter(segment_id, user_defined=True),
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise DuplicateError("name", fields.get("name", ""))
        return _to_segment(doc)

    async def delete(self, segment_id: str) -> bool:
        """Delete a user-defined segment."""
        result = await self._collection.delete_one(
            self._id_filter(segment_id, user_defined=True)
        )
        return result.deleted_count > 0
