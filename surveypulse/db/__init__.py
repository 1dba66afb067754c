"""Database module - MongoDB and Redis connections."""

from surveypulse.db.mongodb import ensure_indexes, get_mongodb
from surveypulse.db.redis import RedisCache, get_redis, get_redis_optional

__all__ = [
    "ensure_indexes",
    "get_mongodb",
    "RedisCache",
    "get_redis",
    "get_redis_optional",
]
