"""Contact repository for MongoDB."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.db.mongodb import EMAIL_COLLATION, to_object_id
from surveypulse.domains.contact.models import Contact, SurveyStats


class ContactRepositoryInterface(ABC):
    """Abstract repository interface for contacts."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Contact | None:
        """Get contact by email, ignoring case."""
        pass

    @abstractmethod
    async def record_invite(self, email: str, invited_at: datetime) -> bool:
        """Atomically count one invite. Returns False when no contact matched."""
        pass

    @abstractmethod
    async def apply_response_stats(
        self,
        contact_id: str,
        expected_responded_count: int,
        fields: dict[str, Any],
    ) -> bool:
        """
        Set response-derived stats only if ``responded_count`` is unchanged.

        Args:
            contact_id: Contact ID
            expected_responded_count: responded_count the update was computed from
            fields: Dotted field paths to set

        Returns:
            False when another writer updated the contact first
        """
        pass

    @abstractmethod
    async def replace_survey_stats(self, contact_id: str, stats: SurveyStats) -> bool:
        """Overwrite survey stats (recalculation only)."""
        pass

    @abstractmethod
    async def list_emails(self) -> list[str]:
        """List every contact email of the tenant."""
        pass

    @abstractmethod
    async def find(self, query: dict, skip: int = 0, limit: int = 50) -> list[Contact]:
        """Run a compiled segment query."""
        pass

    @abstractmethod
    async def count(self, query: dict) -> int:
        """Count contacts matching a compiled segment query."""
        pass


def _to_contact(doc: dict | None) -> Contact | None:
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    return Contact(**doc)


class MongoContactRepository(ContactRepositoryInterface):
    """MongoDB implementation of contact repository."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["contacts"]

    def _scoped(self, query: dict) -> dict:
        # Segment queries may carry their own $and; the tenant key is added beside it
        return {**query, "tenant_id": self._tenant_id}

    async def get_by_email(self, email: str) -> Contact | None:
        """Get contact by email, ignoring case."""
        doc = await self._collection.find_one(
            {"tenant_id": self._tenant_id, "email": email.strip()},
            collation=EMAIL_COLLATION,
        )
        return _to_contact(doc)

    async def record_invite(self, email: str, invited_at: datetime) -> bool:
        """Atomically count one invite."""
        result = await self._collection.update_one(
            {"tenant_id": self._tenant_id, "email": email.strip()},
            {
                "$inc": {"survey_stats.invited_count": 1},
                "$set": {"survey_stats.last_invited_date": invited_at},
            },
            collation=EMAIL_COLLATION,
        )
        return result.matched_count > 0

    async def apply_response_stats(
        self,
        contact_id: str,
        expected_responded_count: int,
        fields: dict[str, Any],
    ) -> bool:
        """Guarded update keyed on the previous responded_count."""
        guard: Any = expected_responded_count
        if expected_responded_count == 0:
            # Contacts created before stats existed have no counter yet
            guard = {"$in": [0, None]}

        result = await self._collection.update_one(
            {
                "_id": to_object_id(contact_id),
                "tenant_id": self._tenant_id,
                "survey_stats.responded_count": guard,
            },
            {"$set": fields},
        )
        return result.modified_count > 0

    async def replace_survey_stats(self, contact_id: str, stats: SurveyStats) -> bool:
        """Overwrite survey stats."""
        result = await self._collection.update_one(
            {"_id": to_object_id(contact_id), "tenant_id": self._tenant_id},
            {"$set": {"survey_stats": stats.model_dump()}},
        )
        return result.matched_count > 0

    async def list_emails(self) -> list[str]:
        """List every contact email of the tenant."""
        cursor = self._collection.find({"tenant_id": self._tenant_id}, {"email": 1})
        return [doc["email"] async for doc in cursor]

    async def find(self, query: dict, skip: int = 0, limit: int = 50) -> list[Contact]:
        """Run a compiled segment query."""
        cursor = (
            self._collection.find(self._scoped(query))
            .sort("_id", -1)
            .skip(skip)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        return [_to_contact(doc) for doc in docs]

    async def count(self, query: dict) -> int:
        """Count contacts matching a compiled segment query."""
        return await self._collection.count_documents(self._scoped(query))
