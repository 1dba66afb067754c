"""Survey response repository for MongoDB."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from surveypulse.core.exceptions import DuplicateError
from surveypulse.db.mongodb import EMAIL_COLLATION, to_object_id
from surveypulse.domains.response.models import Response, ResponseAnalysis


@dataclass
class RespondentMetrics:
    """Scores carried by one response, used to rebuild contact stats.

    Analyzed responses report the metrics the pipeline folded into the
    live stats; only unanalyzed ones fall back to the submitted score and
    rating.
    """

    nps_score: float | None
    rating: float | None
    submitted_at: datetime


class ResponseRepositoryInterface(ABC):
    """Abstract repository interface for survey responses."""

    @abstractmethod
    async def create(self, response: Response) -> Response:
        """
        Persist a response.

        Raises:
            DuplicateError: If a response already exists for the invite
        """
        pass

    @abstractmethod
    async def get_by_id(self, response_id: str) -> Response | None:
        """Get response by ID."""
        pass

    @abstractmethod
    async def get_by_invite_id(self, invite_id: str) -> Response | None:
        """Get the response submitted through an invite."""
        pass

    @abstractmethod
    async def get_many(self, response_ids: list[str]) -> list[Response]:
        """Get several responses by ID, skipping unknown ones."""
        pass

    @abstractmethod
    async def save_analysis(self, response_id: str, analysis: ResponseAnalysis) -> bool:
        """Write the analysis block unless one was already written."""
        pass

    @abstractmethod
    async def claim_stats_sync(self, response_id: str, claimed_at: datetime) -> bool:
        """Mark the response as folded into contact stats. False if already claimed."""
        pass

    @abstractmethod
    async def release_stats_sync(self, response_id: str) -> None:
        """Undo a stats claim after a failed aggregation."""
        pass

    @abstractmethod
    async def list_metrics_for_email(
        self, email: str, include_anonymous: bool = True
    ) -> list[RespondentMetrics]:
        """Scores of every response carrying this email, oldest first."""
        pass


def respondent_metrics(doc: dict) -> RespondentMetrics:
    """Scores from a stored response document, preferring its analysis metrics."""
    metrics = (doc.get("analysis") or {}).get("metrics")
    if metrics:
        return RespondentMetrics(
            nps_score=metrics.get("nps_score"),
            rating=metrics.get("rating"),
            submitted_at=doc["submitted_at"],
        )
    return RespondentMetrics(
        nps_score=doc.get("score"),
        rating=doc.get("rating"),
        submitted_at=doc["submitted_at"],
    )


def _to_response(doc: dict | None) -> Response | None:
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    return Response(**doc)


class MongoResponseRepository(ResponseRepositoryInterface):
    """MongoDB implementation of response repository."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["responses"]

    def _id_filter(self, response_id: str) -> dict:
        return {"_id": to_object_id(response_id), "tenant_id": self._tenant_id}

    async def create(self, response: Response) -> Response:
        """Persist a response."""
        doc = response.model_dump(by_alias=True, exclude={"id"})
        try:
            result = await self._collection.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError("invite_id", response.invite_id or "")
        response.id = str(result.inserted_id)
        return response

    async def get_by_id(self, response_id: str) -> Response | None:
        """Get response by ID."""
        doc = await self._collection.find_one(self._id_filter(response_id))
        return _to_response(doc)

    async def get_by_invite_id(self, invite_id: str) -> Response | None:
        """Get the response submitted through an invite."""
        doc = await self._collection.find_one(
            {"tenant_id": self._tenant_id, "invite_id": invite_id}
        )
        return _to_response(doc)

    async def get_many(self, response_ids: list[str]) -> list[Response]:
        """Get several responses by ID, skipping unknown ones."""
        object_ids = [oid for oid in map(to_object_id, response_ids) if oid]
        cursor = self._collection.find(
            {"_id": {"$in": object_ids}, "tenant_id": self._tenant_id}
        )
        docs = await cursor.to_list(length=len(object_ids))
        return [_to_response(doc) for doc in docs]

    async def save_analysis(self, response_id: str, analysis: ResponseAnalysis) -> bool:
        """Write the analysis block unless one was already written."""
        result = await self._collection.update_one(
            {
                **self._id_filter(response_id),
                "analysis.analyzed_at": {"$exists": False},
            },
            {"$set": {"analysis": analysis.model_dump()}},
        )
        return result.modified_count > 0

    async def claim_stats_sync(self, response_id: str, claimed_at: datetime) -> bool:
        """Mark the response as folded into contact stats."""
        result = await self._collection.update_one(
            {**self._id_filter(response_id), "stats_synced_at": None},
            {"$set": {"stats_synced_at": claimed_at}},
        )
        return result.modified_count > 0

    async def release_stats_sync(self, response_id: str) -> None:
        """Undo a stats claim after a failed aggregation."""
        await self._collection.update_one(
            self._id_filter(response_id), {"$set": {"stats_synced_at": None}}
        )

    async def list_metrics_for_email(
        self, email: str, include_anonymous: bool = True
    ) -> list[RespondentMetrics]:
        """Scores of every response carrying this email, oldest first."""
        query: dict = {"tenant_id": self._tenant_id, "email": email.strip()}
        if not include_anonymous:
            query["is_anonymous"] = False

        cursor = (
            self._collection.find(
                query,
                {"score": 1, "rating": 1, "submitted_at": 1, "analysis.metrics": 1},
                collation=EMAIL_COLLATION,
            )
            .sort("submitted_at", 1)
        )
        return [respondent_metrics(doc) async for doc in cursor]
