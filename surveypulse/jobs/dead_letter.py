"""Dead-letter sinks."""

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.jobs.base import DeadLetterEntry, DeadLetterSink


class RedisDeadLetterSink(DeadLetterSink):
    """Appends entries to the queue's Redis dead-letter list."""

    def __init__(self, client: redis.Redis, key: str):
        self._client = client
        self._key = key

    async def record(self, entry: DeadLetterEntry) -> None:
        await self._client.lpush(self._key, entry.model_dump_json())


class MongoDeadLetterSink(DeadLetterSink):
    """Stores entries in the dead_letter_jobs collection."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._collection = db["dead_letter_jobs"]

    async def record(self, entry: DeadLetterEntry) -> None:
        await self._collection.insert_one(entry.model_dump())
