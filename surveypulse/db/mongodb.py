"""MongoDB database connection using Motor (async driver)."""

import logging

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from surveypulse.core.config import settings

logger = logging.getLogger(__name__)

# Global MongoDB client and database instances
mongodb_client: AsyncIOMotorClient | None = None
mongodb_db: AsyncIOMotorDatabase | None = None

# Case-insensitive comparison for contact emails
EMAIL_COLLATION = {"locale": "en", "strength": 2}


async def connect_mongodb() -> None:
    """Connect to MongoDB."""
    global mongodb_client, mongodb_db

    mongodb_client = AsyncIOMotorClient(
        settings.mongodb_url,
        maxPoolSize=50,
        minPoolSize=5,
        maxIdleTimeMS=30000,
        connectTimeoutMS=5000,
        serverSelectionTimeoutMS=5000,
        tz_aware=True,
    )
    mongodb_db = mongodb_client[settings.mongodb_database]

    # Test connection
    try:
        await mongodb_client.admin.command("ping")
        logger.info(f"Connected to MongoDB: {settings.mongodb_database}")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        raise


async def close_mongodb() -> None:
    """Close MongoDB connection."""
    global mongodb_client, mongodb_db

    if mongodb_client:
        mongodb_client.close()
        mongodb_client = None
        mongodb_db = None
        logger.info("MongoDB connection closed")


def to_object_id(value: str) -> ObjectId | None:
    """Parse an id string, returning None when it is not a valid ObjectId."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def get_mongodb() -> AsyncIOMotorDatabase:
    """
    Get MongoDB database instance.

    Usage:
        @app.get("/")
        async def endpoint(db: AsyncIOMotorDatabase = Depends(get_mongodb)):
            collection = db["actions"]
            ...
    """
    if mongodb_db is None:
        raise RuntimeError("MongoDB is not connected")
    return mongodb_db


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """
    Create the indexes the pipeline relies on.

    Unique indexes here back the idempotency guarantees: one response per
    invite, one auto-generated action per response, one recognition per
    response, one contact per (tenant, email) ignoring case.
    """
    await db["surveys"].create_index([("tenant_id", ASCENDING), ("status", ASCENDING)])

    invites = db["survey_invites"]
    await invites.create_index("token", unique=True)
    await invites.create_index([("tenant_id", ASCENDING), ("survey_id", ASCENDING)])
    await invites.create_index([("tenant_id", ASCENDING), ("contact.email", ASCENDING)])

    responses = db["responses"]
    await responses.create_index(
        "invite_id",
        unique=True,
        partialFilterExpression={"invite_id": {"$type": "string"}},
    )
    await responses.create_index(
        [("tenant_id", ASCENDING), ("survey_id", ASCENDING), ("submitted_at", DESCENDING)]
    )
    await responses.create_index([("tenant_id", ASCENDING), ("email", ASCENDING)])

    contacts = db["contacts"]
    await contacts.create_index(
        [("tenant_id", ASCENDING), ("email", ASCENDING)],
        unique=True,
        collation=EMAIL_COLLATION,
    )
    await contacts.create_index([("tenant_id", ASCENDING), ("last_activity", DESCENDING)])

    actions = db["actions"]
    await actions.create_index(
        [("tenant_id", ASCENDING), ("is_deleted", ASCENDING), ("status", ASCENDING)]
    )
    await actions.create_index([("tenant_id", ASCENDING), ("due_date", ASCENDING)])
    await actions.create_index(
        [("tenant_id", ASCENDING), ("assigned_to", ASCENDING), ("status", ASCENDING)]
    )
    await actions.create_index(
        [("tenant_id", ASCENDING), ("source", ASCENDING), ("created_at", DESCENDING)]
    )
    await actions.create_index(
        [("tenant_id", ASCENDING), ("response_id", ASCENDING)],
        unique=True,
        partialFilterExpression={
            "response_id": {"$type": "string"},
            "source": "ai_generated",
        },
    )
    await actions.create_index(
        [("sla.target_resolution_time", ASCENDING), ("status", ASCENDING)]
    )

    await db["assignment_rules"].create_index(
        [("tenant_id", ASCENDING), ("is_active", ASCENDING), ("priority", DESCENDING)]
    )
    await db["recognitions"].create_index(
        [("tenant_id", ASCENDING), ("response_id", ASCENDING)], unique=True
    )
    await db["audience_segments"].create_index(
        [("tenant_id", ASCENDING), ("name", ASCENDING)], unique=True
    )
    await db["users"].create_index([("tenant_id", ASCENDING), ("is_active", ASCENDING)])
    await db["tenant_configs"].create_index("tenant_id", unique=True)
    await db["notifications"].create_index(
        [("tenant_id", ASCENDING), ("created_at", DESCENDING)]
    )

    logger.info("MongoDB indexes ensured")
