"""Job queue contracts shared by the Redis-backed and in-process queues."""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from surveypulse.core.exceptions import AppException


class Job(BaseModel):
    """A unit of work with its retry bookkeeping."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    payload: dict[str, Any] = Field(default_factory=dict)
    attempts_made: int = 0
    max_attempts: int = 3
    last_error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DeadLetterEntry(BaseModel):
    """A job that exhausted its attempts."""

    original_job_id: str
    job_name: str
    payload: dict[str, Any]
    error_message: str
    attempts: int
    failed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_job(cls, job: Job, error_message: str) -> "DeadLetterEntry":
        return cls(
            original_job_id=job.id,
            job_name=job.name,
            payload=job.payload,
            error_message=error_message,
            attempts=job.attempts_made,
        )


JobHandler = Callable[[Job], Awaitable[None]]


class DeadLetterSink(ABC):
    """Terminal destination for failed jobs."""

    @abstractmethod
    async def record(self, entry: DeadLetterEntry) -> None:
        pass


class JobQueue(ABC):
    """At-least-once job queue."""

    name: str

    @abstractmethod
    async def enqueue(self, payload: dict[str, Any], job_id: str | None = None) -> Job:
        """
        Add a job.

        Args:
            payload: Job payload
            job_id: Optional stable id; a job with the same id already
                waiting is not added twice
        """
        pass

    @abstractmethod
    async def start(self) -> None:
        """Start consuming jobs."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Stop consuming and drain jobs in flight."""
        pass


def backoff_delay(attempt: int, delay: float = 5.0, base: int = 2) -> float:
    """Seconds to wait before retry number ``attempt`` (1-based)."""
    return delay * base ** (attempt - 1)


def is_retryable(error: Exception) -> bool:
    """Client errors (4xx) never succeed on retry; everything else may."""
    if isinstance(error, AppException):
        return error.status_code >= 500
    return True
