"""Job queue selection."""

import logging

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorDatabase

from surveypulse.core.config import Settings
from surveypulse.jobs.base import JobHandler, JobQueue
from surveypulse.jobs.dead_letter import MongoDeadLetterSink, RedisDeadLetterSink
from surveypulse.jobs.inline_queue import InlineJobQueue
from surveypulse.jobs.redis_queue import RedisJobQueue

logger = logging.getLogger(__name__)


def create_job_queue(
    handler: JobHandler,
    settings: Settings,
    db: AsyncIOMotorDatabase,
    client: redis.Redis | None,
) -> JobQueue:
    """
    Build the processing queue.

    Uses Redis when a client is connected and falls back to in-process
    execution otherwise.
    """
    if client is None:
        logger.warning(
            f"No Redis broker, queue '{settings.queue_name}' falls back to in-process execution"
        )
        return InlineJobQueue(
            name=settings.queue_name,
            handler=handler,
            dead_letters=MongoDeadLetterSink(db),
            max_attempts=settings.queue_max_attempts,
        )

    queue = RedisJobQueue(
        client=client,
        name=settings.queue_name,
        handler=handler,
        dead_letters=RedisDeadLetterSink(client, f"queue:{settings.queue_name}:dlq"),
        concurrency=settings.queue_concurrency,
        max_attempts=settings.queue_max_attempts,
        backoff_seconds=settings.queue_backoff_delay_seconds,
        backoff_base=settings.queue_backoff_base,
        poll_timeout=settings.queue_poll_timeout_seconds,
        shutdown_grace_seconds=settings.queue_shutdown_grace_seconds,
    )
    return queue
