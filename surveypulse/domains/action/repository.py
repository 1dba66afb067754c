"""Action repository for MongoDB."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from surveypulse.core.exceptions import DuplicateError, ValidationError
from surveypulse.db.mongodb import to_object_id
from surveypulse.domains.action.models import (
    Action,
    ActionPriority,
    ActionStatus,
    AssignmentHistoryEntry,
)


class ActionRepositoryInterface(ABC):
    """Abstract repository interface for actions.

    Soft-deleted actions are invisible to every read.
    """

    @abstractmethod
    async def create(self, action: Action) -> Action:
        """
        Create a new action.

        Raises:
            DuplicateError: If an auto-generated action already exists for the response
        """
        pass

    @abstractmethod
    async def get_by_id(self, action_id: str) -> Action | None:
        """Get action by ID."""
        pass

    @abstractmethod
    async def get_by_response_id(self, response_id: str) -> Action | None:
        """Get the action created for a response."""
        pass

    @abstractmethod
    async def list_actions(
        self,
        filters: dict[str, Any],
        limit: int = 20,
        cursor: str | None = None,
    ) -> tuple[list[Action], str | None, bool]:
        """List actions newest first with cursor pagination."""
        pass

    @abstractmethod
    async def update(
        self,
        action_id: str,
        fields: dict[str, Any],
        history_entry: AssignmentHistoryEntry | None = None,
        add_tags: list[str] | None = None,
        expected_priority: str | None = None,
    ) -> Action | None:
        """
        Update an action that is not resolved.

        Args:
            action_id: Action ID
            fields: Dotted field paths to set
            history_entry: Entry appended to assignment_history
            add_tags: Tags added if missing
            expected_priority: Only update while the priority still has this value

        Returns:
            Updated action, or None when nothing matched
        """
        pass

    @abstractmethod
    async def soft_delete(self, action_id: str, deleted_at: datetime) -> bool:
        """Mark an action deleted."""
        pass

    @abstractmethod
    async def count_open_for_assignee(self, user_id: str) -> int:
        """Count unresolved actions assigned to a user."""
        pass

    @abstractmethod
    async def find_breached(self, now: datetime, limit: int = 100) -> list[Action]:
        """Unresolved actions past their SLA target that can still escalate."""
        pass

    @abstractmethod
    async def count_recent_by_category(
        self, since: datetime, sources: list[str]
    ) -> dict[str, int]:
        """Count actions created since a date per category."""
        pass


def _to_action(doc: dict | None) -> Action | None:
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    return Action(**doc)


class MongoActionRepository(ActionRepositoryInterface):
    """MongoDB implementation of action repository."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["actions"]

    def _live(self, extra: dict | None = None) -> dict:
        return {"tenant_id": self._tenant_id, "is_deleted": False, **(extra or {})}

    async def create(self, action: Action) -> Action:
        """Create a new action."""
        doc = action.model_dump(by_alias=True, exclude={"id"})
        try:
            result = await self._collection.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError("response_id", action.response_id or "")
        action.id = str(result.inserted_id)
        return action

    async def get_by_id(self, action_id: str) -> Action | None:
        """Get action by ID."""
        doc = await self._collection.find_one(self._live({"_id": to_object_id(action_id)}))
        return _to_action(doc)

    async def get_by_response_id(self, response_id: str) -> Action | None:
        """Get the action created for a response."""
        doc = await self._collection.find_one(self._live({"response_id": response_id}))
        return _to_action(doc)

    async def list_actions(
        self,
        filters: dict[str, Any],
        limit: int = 20,
        cursor: str | None = None,
    ) -> tuple[list[Action], str | None, bool]:
        """List actions newest first with cursor pagination."""
        query = self._live(
            {key: value for key, value in filters.items() if value is not None}
        )
        if cursor:
            cursor_id = to_object_id(cursor)
            if cursor_id is None:
                raise ValidationError("Invalid cursor", details={"cursor": cursor})
            query["_id"] = {"$lt": cursor_id}

        cursor_result = self._collection.find(query).sort("_id", -1).limit(limit + 1)
        docs = await cursor_result.to_list(length=limit + 1)

        has_more = len(docs) > limit
        if has_more:
            docs = docs[:limit]

        actions = [_to_action(doc) for doc in docs]
        next_cursor = actions[-1].id if has_more and actions else None
        return actions, next_cursor, has_more

    async def update(
        self,
        action_id: str,
        fields: dict[str, Any],
        history_entry: AssignmentHistoryEntry | None = None,
        add_tags: list[str] | None = None,
        expected_priority: str | None = None,
    ) -> Action | None:
        """Update an action that is not resolved."""
        query = self._live(
            {
                "_id": to_object_id(action_id),
                "status": {"$ne": ActionStatus.RESOLVED.value},
            }
        )
        if expected_priority is not None:
            query["priority"] = expected_priority

        update: dict[str, Any] = {"$set": fields}
        if history_entry is not None:
            update["$push"] = {"assignment_history": history_entry.model_dump()}
        if add_tags:
            update["$addToSet"] = {"tags": {"$each": add_tags}}

        doc = await self._collection.find_one_and_update(
            query, update, return_document=ReturnDocument.AFTER
        )
        return _to_action(doc)

    async def soft_delete(self, action_id: str, deleted_at: datetime) -> bool:
        """Mark an action deleted."""
        result = await self._collection.update_one(
            self._live({"_id": to_object_id(action_id)}),
            {"$set": {"is_deleted": True, "updated_at": deleted_at}},
        )
        return result.modified_count > 0

    async def count_open_for_assignee(self, user_id: str) -> int:
        """Count unresolved actions assigned to a user."""
        return await self._collection.count_documents(
            self._live(
                {
                    "assigned_to": user_id,
                    "status": {"$ne": ActionStatus.RESOLVED.value},
                }
            )
        )

    async def find_breached(self, now: datetime, limit: int = 100) -> list[Action]:
        """Unresolved actions past their SLA target that can still escalate."""
        query = self._live(
            {
                "status": {"$ne": ActionStatus.RESOLVED.value},
                "sla.target_resolution_time": {"$lt": now},
                # High priority actions are only reported once
                "$or": [
                    {"priority": {"$ne": ActionPriority.HIGH.value}},
                    {"sla.is_breached": {"$ne": True}},
                ],
            }
        )
        cursor = self._collection.find(query).sort("sla.target_resolution_time", 1).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [_to_action(doc) for doc in docs]

    async def count_recent_by_category(
        self, since: datetime, sources: list[str]
    ) -> dict[str, int]:
        """Count actions created since a date per category."""
        pipeline = [
            {
                "$match": self._live(
                    {"source": {"$in": sources}, "created_at": {"$gte": since}}
                )
            },
            {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        ]
        results = await self._collection.aggregate(pipeline).to_list(length=None)
        return {item["_id"]: item["count"] for item in results if item["_id"]}
