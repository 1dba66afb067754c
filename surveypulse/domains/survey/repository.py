"""Survey repository for MongoDB.

Surveys are authored elsewhere; the pipeline only reads them.
"""

from abc import ABC, abstractmethod

from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.db.mongodb import to_object_id
from surveypulse.domains.survey.models import Survey


class SurveyRepositoryInterface(ABC):
    """Abstract repository interface for surveys."""

    @abstractmethod
    async def get_by_id(self, survey_id: str) -> Survey | None:
        """Get survey by ID."""
        pass


class PublicSurveyLookupInterface(ABC):
    """Tenant-resolving survey lookup for public (anonymous) entry points."""

    @abstractmethod
    async def get_by_id(self, survey_id: str) -> Survey | None:
        """Get survey by ID regardless of tenant."""
        pass


def _to_survey(doc: dict | None) -> Survey | None:
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    return Survey(**doc)


class MongoSurveyRepository(SurveyRepositoryInterface):
    """MongoDB implementation of survey repository."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["surveys"]

    async def get_by_id(self, survey_id: str) -> Survey | None:
        """Get survey by ID."""
        object_id = to_object_id(survey_id)
        if object_id is None:
            return None
        doc = await self._collection.find_one(
            {"_id": object_id, "tenant_id": self._tenant_id}
        )
        return _to_survey(doc)


class MongoPublicSurveyLookup(PublicSurveyLookupInterface):
    """MongoDB implementation of public survey lookup."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._collection = db["surveys"]

    async def get_by_id(self, survey_id: str) -> Survey | None:
        """Get survey by ID regardless of tenant."""
        object_id = to_object_id(survey_id)
        if object_id is None:
            return None
        doc = await self._collection.find_one({"_id": object_id})
        return _to_survey(doc)
