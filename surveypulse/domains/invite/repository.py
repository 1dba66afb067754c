"""Survey invite repository for MongoDB."""

from abc import ABC, abstractmethod
from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.db.mongodb import EMAIL_COLLATION, to_object_id
from surveypulse.domains.invite.models import InviteStatus, SurveyInvite


class InviteRepositoryInterface(ABC):
    """Abstract repository interface for survey invites."""

    @abstractmethod
    async def create(self, invite: SurveyInvite) -> SurveyInvite:
        """Create a new invite."""
        pass

    @abstractmethod
    async def get_by_id(self, invite_id: str) -> SurveyInvite | None:
        """Get invite by ID."""
        pass

    @abstractmethod
    async def mark_opened(self, invite_id: str, opened_at: datetime) -> bool:
        """Move a sent invite to opened."""
        pass

    @abstractmethod
    async def mark_responded(self, invite_id: str, responded_at: datetime) -> bool:
        """Move an invite to responded unless it already is."""
        pass

    @abstractmethod
    async def increment_attempts(self, invite_id: str) -> None:
        """Count one submission attempt."""
        pass

    @abstractmethod
    async def summarize_for_email(self, email: str) -> tuple[int, datetime | None]:
        """Number of invites sent to an email and the latest invite date."""
        pass


class InviteTokenLookupInterface(ABC):
    """Resolves an invite from its token across tenants."""

    @abstractmethod
    async def get_by_token(self, token: str) -> SurveyInvite | None:
        """Get invite by token."""
        pass


def _to_invite(doc: dict | None) -> SurveyInvite | None:
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    return SurveyInvite(**doc)


class MongoInviteRepository(InviteRepositoryInterface):
    """MongoDB implementation of invite repository."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["survey_invites"]

    def _id_filter(self, invite_id: str) -> dict:
        return {"_id": to_object_id(invite_id), "tenant_id": self._tenant_id}

    async def create(self, invite: SurveyInvite) -> SurveyInvite:
        """Create a new invite."""
        doc = invite.model_dump(by_alias=True, exclude={"id"})
        result = await self._collection.insert_one(doc)
        invite.id = str(result.inserted_id)
        return invite

    async def get_by_id(self, invite_id: str) -> SurveyInvite | None:
        """Get invite by ID."""
        doc = await self._collection.find_one(self._id_filter(invite_id))
        return _to_invite(doc)

    async def mark_opened(self, invite_id: str, opened_at: datetime) -> bool:
        """Move a sent invite to opened."""
        result = await self._collection.update_one(
            {**self._id_filter(invite_id), "status": InviteStatus.SENT.value},
            {"$set": {"status": InviteStatus.OPENED.value, "opened_at": opened_at}},
        )
        return result.modified_count > 0

    async def mark_responded(self, invite_id: str, responded_at: datetime) -> bool:
        """Move an invite to responded unless it already is."""
        result = await self._collection.update_one(
            {
                **self._id_filter(invite_id),
                "status": {"$ne": InviteStatus.RESPONDED.value},
            },
            {
                "$set": {
                    "status": InviteStatus.RESPONDED.value,
                    "responded_at": responded_at,
                }
            },
        )
        return result.modified_count > 0

    async def increment_attempts(self, invite_id: str) -> None:
        """Count one submission attempt."""
        await self._collection.update_one(
            self._id_filter(invite_id), {"$inc": {"attempt_count": 1}}
        )

    async def summarize_for_email(self, email: str) -> tuple[int, datetime | None]:
        """Number of invites sent to an email and the latest invite date."""
        pipeline = [
            {"$match": {"tenant_id": self._tenant_id, "contact.email": email.strip()}},
            {
                "$group": {
                    "_id": None,
                    "count": {"$sum": 1},
                    "last_invited": {"$max": "$created_at"},
                }
            },
        ]
        result = await self._collection.aggregate(
            pipeline, collation=EMAIL_COLLATION
        ).to_list(length=1)
        if not result:
            return 0, None
        return result[0]["count"], result[0]["last_invited"]


class MongoInviteTokenLookup(InviteTokenLookupInterface):
    """MongoDB implementation of invite token lookup."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._collection = db["survey_invites"]

    async def get_by_token(self, token: str) -> SurveyInvite | None:
        """Get invite by token."""
        doc = await self._collection.find_one({"token": token})
        return _to_invite(doc)
