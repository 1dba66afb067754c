"""Assignment rule repository for MongoDB."""

from abc import ABC, abstractmethod

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from surveypulse.db.mongodb import to_object_id
from surveypulse.domains.assignment.models import AssignmentRule


class AssignmentRuleRepositoryInterface(ABC):
    """Abstract repository interface for assignment rules."""

    @abstractmethod
    async def create(self, rule: AssignmentRule) -> AssignmentRule:
        """Create a new rule."""
        pass

    @abstractmethod
    async def get_by_id(self, rule_id: str) -> AssignmentRule | None:
        """Get rule by ID."""
        pass

    @abstractmethod
    async def list_rules(self, active_only: bool = False) -> list[AssignmentRule]:
        """List rules, highest priority first."""
        pass

    @abstractmethod
    async def set_active(self, rule_id: str, is_active: bool) -> bool:
        """Activate or deactivate a rule."""
        pass

    @abstractmethod
    async def next_round_robin_index(self, rule_id: str) -> int | None:
        """
        Atomically advance ``last_assigned_index`` and return the new value.

        The counter starts at -1, so the first call returns 0.
        """
        pass


def _to_rule(doc: dict | None) -> AssignmentRule | None:
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    return AssignmentRule(**doc)


class MongoAssignmentRuleRepository(AssignmentRuleRepositoryInterface):
    """MongoDB implementation of assignment rule repository."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["assignment_rules"]

    def _id_filter(self, rule_id: str) -> dict:
        return {"_id": to_object_id(rule_id), "tenant_id": self._tenant_id}

    async def create(self, rule: AssignmentRule) -> AssignmentRule:
        """Create a new rule."""
        doc = rule.model_dump(by_alias=True, exclude={"id"})
        result = await self._collection.insert_one(doc)
        rule.id = str(result.inserted_id)
        return rule

    async def get_by_id(self, rule_id: str) -> AssignmentRule | None:
        """Get rule by ID."""
        doc = await self._collection.find_one(self._id_filter(rule_id))
        return _to_rule(doc)

    async def list_rules(self, active_only: bool = False) -> list[AssignmentRule]:
        """List rules, highest priority first."""
        query: dict = {"tenant_id": self._tenant_id}
        if active_only:
            query["is_active"] = True
        cursor = self._collection.find(query).sort([("priority", -1), ("_id", 1)])
        return [_to_rule(doc) async for doc in cursor]

    async def set_active(self, rule_id: str, is_active: bool) -> bool:
        """Activate or deactivate a rule."""
        result = await self._collection.update_one(
            self._id_filter(rule_id), {"$set": {"is_active": is_active}}
        )
        return result.matched_count > 0

    async def next_round_robin_index(self, rule_id: str) -> int | None:
        """Store-side increment of the round-robin counter."""
        # Pipeline update so a missing counter starts from -1
        doc = await self._collection.find_one_and_update(
            self._id_filter(rule_id),
            [
                {
                    "$set": {
                        "last_assigned_index": {
                            "$add": [{"$ifNull": ["$last_assigned_index", -1]}, 1]
                        }
                    }
                }
            ],
            projection={"last_assigned_index": 1},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return doc["last_assigned_index"]
