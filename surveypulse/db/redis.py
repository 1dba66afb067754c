"""Redis connection for the job queue, caching and rate limiting."""

import json
import logging

import redis.asyncio as redis

from surveypulse.core.config import settings

logger = logging.getLogger(__name__)

# Global Redis client
redis_client: redis.Redis | None = None


async def connect_redis() -> bool:
    """
    Connect to Redis.

    Returns:
        True when the server answered a ping. The client is left unset
        otherwise so callers can degrade instead of failing startup.
    """
    global redis_client

    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
    )

    try:
        await client.ping()
    except Exception as e:
        logger.warning(f"Redis unreachable at {settings.redis_url}: {e}")
        await client.aclose()
        redis_client = None
        return False

    redis_client = client
    logger.info(f"Connected to Redis: {settings.redis_url}")
    return True


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client

    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


def get_redis() -> redis.Redis:
    """
    Get Redis client instance.

    Usage:
        @app.get("/")
        async def endpoint(redis: redis.Redis = Depends(get_redis)):
            await redis.get("key")
            ...
    """
    if redis_client is None:
        raise RuntimeError("Redis is not connected")
    return redis_client


def get_redis_optional() -> redis.Redis | None:
    """Get Redis client instance, or None when running without a broker."""
    return redis_client


class RedisCache:
    """Helper class for common Redis operations.

    Every operation is a no-op (or a miss) when Redis is not connected.
    """

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    def _key(self, key: str) -> str:
        """Build full key with prefix."""
        return f"{self.prefix}:{key}" if self.prefix else key

    async def get(self, key: str) -> str | None:
        """Get value by key."""
        client = get_redis_optional()
        if client is None:
            return None
        return await client.get(self._key(key))

    async def get_json(self, key: str) -> dict | None:
        """Get JSON value by key."""
        value = await self.get(key)
        if value:
            return json.loads(value)
        return None

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
    ) -> None:
        """Set value with optional TTL (seconds)."""
        client = get_redis_optional()
        if client is None:
            return
        if ttl:
            await client.setex(self._key(key), ttl, value)
        else:
            await client.set(self._key(key), value)

    async def set_json(
        self,
        key: str,
        value: dict,
        ttl: int | None = None,
    ) -> None:
        """Set JSON value with optional TTL."""
        await self.set(key, json.dumps(value, default=str), ttl)

    async def delete(self, key: str) -> None:
        """Delete key."""
        client = get_redis_optional()
        if client is None:
            return
        await client.delete(self._key(key))


# Pre-configured cache instances
segment_count_cache = RedisCache(prefix="segment_count")
