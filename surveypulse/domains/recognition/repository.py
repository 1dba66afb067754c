"""Recognition repository for MongoDB."""

from abc import ABC, abstractmethod

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from surveypulse.domains.recognition.models import Recognition


class RecognitionRepositoryInterface(ABC):
    """Abstract repository interface for recognitions."""

    @abstractmethod
    async def record(self, recognition: Recognition) -> Recognition:
        """Store a recognition, one per response."""
        pass

    @abstractmethod
    async def get_by_response_id(self, response_id: str) -> Recognition | None:
        """Get the recognition recorded for a response."""
        pass


class MongoRecognitionRepository(RecognitionRepositoryInterface):
    """MongoDB implementation of recognition repository."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["recognitions"]

    async def record(self, recognition: Recognition) -> Recognition:
        """Upsert by response so job retries do not duplicate it."""
        doc = recognition.model_dump(by_alias=True, exclude={"id", "created_at"})
        doc["tenant_id"] = self._tenant_id
        result = await self._collection.find_one_and_update(
            {"tenant_id": self._tenant_id, "response_id": recognition.response_id},
            {"$set": doc, "$setOnInsert": {"created_at": recognition.created_at}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        result["_id"] = str(result["_id"])
        return Recognition(**result)

    async def get_by_response_id(self, response_id: str) -> Recognition | None:
        """Get the recognition recorded for a response."""
        doc = await self._collection.find_one(
            {"tenant_id": self._tenant_id, "response_id": response_id}
        )
        if not doc:
            return None
        doc["_id"] = str(doc["_id"])
        return Recognition(**doc)
