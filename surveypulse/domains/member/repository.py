"""Tenant member directory backed by the users collection."""

from abc import ABC, abstractmethod

from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.db.mongodb import to_object_id


class MemberDirectoryInterface(ABC):
    """Answers whether a user belongs to the tenant."""

    @abstractmethod
    async def is_member(self, user_id: str) -> bool:
        pass


class MongoMemberDirectory(MemberDirectoryInterface):
    """Looks users up by id within the tenant."""

    def __init__(self, db: AsyncIOMotorDatabase, tenant_id: str):
        self._tenant_id = tenant_id
        self._collection = db["users"]

    async def is_member(self, user_id: str) -> bool:
        object_id = to_object_id(user_id)
        if object_id is None:
            return False
        doc = await self._collection.find_one(
            {"_id": object_id, "tenant_id": self._tenant_id, "is_active": {"$ne": False}},
            projection={"_id": 1},
        )
        return doc is not None
