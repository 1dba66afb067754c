"""Redis-backed job queue.

Keys, for a queue named ``q``:

- ``queue:q:ready``       list of job ids waiting for a worker
- ``queue:q:processing``  list of job ids a worker has taken
- ``queue:q:delayed``     sorted set of job ids scored by retry time
- ``queue:q:job:<id>``    job JSON
- ``queue:q:dlq``         list of dead-letter entries

Workers take jobs with BLMOVE so a crashed worker leaves its job in the
processing list, from where it is recovered on the next start.
"""

import asyncio
import logging
import time
from typing import Any

import redis.asyncio as redis
from pydantic import ValidationError

from surveypulse.core.logging import log_context
from surveypulse.jobs.base import (
    DeadLetterEntry,
    DeadLetterSink,
    Job,
    JobHandler,
    JobQueue,
    backoff_delay,
    is_retryable,
)

logger = logging.getLogger(__name__)

SHUTDOWN_ERROR = "Worker shut down before the job finished"


class RedisJobQueue(JobQueue):
    """Durable queue with retries, exponential backoff and a dead-letter list."""

    def __init__(
        self,
        client: redis.Redis,
        name: str,
        handler: JobHandler,
        dead_letters: DeadLetterSink,
        concurrency: int = 5,
        max_attempts: int = 3,
        backoff_seconds: float = 5.0,
        backoff_base: int = 2,
        poll_timeout: int = 1,
        shutdown_grace_seconds: float = 30.0,
    ):
        self.name = name
        self._client = client
        self._handler = handler
        self._dead_letters = dead_letters
        self._concurrency = concurrency
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._backoff_base = backoff_base
        self._poll_timeout = poll_timeout
        self._grace = shutdown_grace_seconds

        self._stopping = asyncio.Event()
        self._workers: list[asyncio.Task] = []
        self._scheduler: asyncio.Task | None = None
        self._in_flight: dict[str, Job] = {}

    # Keys

    @property
    def ready_key(self) -> str:
        return f"queue:{self.name}:ready"

    @property
    def processing_key(self) -> str:
        return f"queue:{self.name}:processing"

    @property
    def delayed_key(self) -> str:
        return f"queue:{self.name}:delayed"

    @property
    def dead_letter_key(self) -> str:
        return f"queue:{self.name}:dlq"

    def job_key(self, job_id: str) -> str:
        return f"queue:{self.name}:job:{job_id}"

    # Producer side

    async def enqueue(self, payload: dict[str, Any], job_id: str | None = None) -> Job:
        """Store the job and push its id onto the ready list."""
        job = Job(name=self.name, payload=payload, max_attempts=self._max_attempts)
        if job_id:
            job.id = job_id

        stored = await self._client.set(self.job_key(job.id), job.model_dump_json(), nx=True)
        if not stored:
            logger.info(
                "Job already queued, not adding it again",
                extra=log_context(job_id=job.id),
            )
            return job

        await self._client.lpush(self.ready_key, job.id)
        logger.debug("Job enqueued", extra=log_context(job_id=job.id))
        return job

    # Consumer side

    async def start(self) -> None:
        """Recover stalled jobs and start the workers."""
        recovered = await self.recover_stalled()
        if recovered:
            logger.warning(f"Recovered {recovered} stalled job(s) in '{self.name}'")

        self._stopping.clear()
        self._scheduler = asyncio.create_task(self._schedule_delayed())
        self._workers = [
            asyncio.create_task(self._work(index)) for index in range(self._concurrency)
        ]
        logger.info(f"Queue '{self.name}' started with {self._concurrency} worker(s)")

    async def recover_stalled(self) -> int:
        """Move every job left in the processing list back to ready."""
        count = 0
        while await self._client.lmove(self.processing_key, self.ready_key, "RIGHT", "LEFT"):
            count += 1
        return count

    async def promote_due(self, now: float | None = None) -> int:
        """Move delayed jobs whose retry time has come onto the ready list."""
        now = time.time() if now is None else now
        due = await self._client.zrangebyscore(self.delayed_key, "-inf", now)
        promoted = 0
        for job_id in due:
            # zrem decides which worker promotes a job when several race
            if await self._client.zrem(self.delayed_key, job_id):
                await self._client.lpush(self.ready_key, job_id)
                promoted += 1
        return promoted

    async def _schedule_delayed(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.promote_due()
            except Exception as e:
                logger.warning(f"Promoting delayed jobs failed: {e}")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._poll_timeout)
            except asyncio.TimeoutError:
                pass

    async def _work(self, index: int) -> None:
        while not self._stopping.is_set():
            try:
                job_id = await self._client.blmove(
                    self.ready_key,
                    self.processing_key,
                    self._poll_timeout,
                    "RIGHT",
                    "LEFT",
                )
            except Exception as e:
                logger.warning(f"Worker {index} could not poll '{self.name}': {e}")
                await asyncio.sleep(self._poll_timeout)
                continue

            if not job_id:
                continue
            try:
                await self.process(job_id)
            except Exception as e:
                logger.exception(
                    f"Worker {index} failed to settle job: {e}",
                    extra=log_context(job_id=job_id),
                )

    async def process(self, job_id: str) -> None:
        """Run one job taken from the ready list."""
        raw = await self._client.get(self.job_key(job_id))
        if raw is None:
            await self._client.lrem(self.processing_key, 1, job_id)
            return

        try:
            job = Job.model_validate_json(raw)
        except ValidationError as e:
            await self._discard_unreadable(job_id, raw, e)
            return

        job.attempts_made += 1
        self._in_flight[job.id] = job

        try:
            await self._handler(job)
        except Exception as e:
            self._in_flight.pop(job.id, None)
            await self._fail(job, e)
            return

        self._in_flight.pop(job.id, None)
        pipe = self._client.pipeline()
        pipe.lrem(self.processing_key, 1, job.id)
        pipe.delete(self.job_key(job.id))
        await pipe.execute()

    async def _fail(self, job: Job, error: Exception) -> None:
        job.last_error = str(error) or error.__class__.__name__
        context = log_context(job_id=job.id, **_payload_context(job))

        if is_retryable(error) and job.attempts_made < job.max_attempts:
            delay = backoff_delay(job.attempts_made, self._backoff_seconds, self._backoff_base)
            pipe = self._client.pipeline()
            pipe.set(self.job_key(job.id), job.model_dump_json())
            pipe.zadd(self.delayed_key, {job.id: time.time() + delay})
            pipe.lrem(self.processing_key, 1, job.id)
            await pipe.execute()
            logger.warning(
                f"Job attempt {job.attempts_made}/{job.max_attempts} failed, "
                f"retrying in {delay:.0f}s: {job.last_error}",
                extra=context,
            )
            return

        await self._dead_letter(job, job.last_error)

    async def _dead_letter(self, job: Job, error_message: str) -> None:
        await self._dead_letters.record(DeadLetterEntry.from_job(job, error_message))
        pipe = self._client.pipeline()
        pipe.lrem(self.processing_key, 1, job.id)
        pipe.delete(self.job_key(job.id))
        await pipe.execute()
        logger.error(
            f"Job moved to dead-letter queue after {job.attempts_made} attempt(s): "
            f"{error_message}",
            extra=log_context(job_id=job.id, **_payload_context(job)),
        )

    async def _discard_unreadable(self, job_id: str, raw: str, error: ValidationError) -> None:
        await self._dead_letters.record(
            DeadLetterEntry(
                original_job_id=job_id,
                job_name=self.name,
                payload={"raw": raw},
                error_message=f"Unreadable job body: {error.error_count()} error(s)",
                attempts=0,
            )
        )
        pipe = self._client.pipeline()
        pipe.lrem(self.processing_key, 1, job_id)
        pipe.delete(self.job_key(job_id))
        await pipe.execute()
        logger.error("Unreadable job moved to dead-letter queue", extra=log_context(job_id=job_id))

    async def close(self) -> None:
        """
        Stop polling and wait for jobs in flight.

        Jobs still running when the grace period ends are cancelled and
        dead-lettered.
        """
        self._stopping.set()
        tasks = [*self._workers, *([self._scheduler] if self._scheduler else [])]
        if not tasks:
            return

        _, pending = await asyncio.wait(tasks, timeout=self._grace)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for job in list(self._in_flight.values()):
            await self._dead_letter(job, SHUTDOWN_ERROR)
        self._in_flight.clear()

        self._workers = []
        self._scheduler = None
        logger.info(f"Queue '{self.name}' stopped")


def _payload_context(job: Job) -> dict[str, Any]:
    return {
        key: job.payload.get(key)
        for key in ("tenant_id", "survey_id", "response_id")
        if job.payload.get(key) is not None
    }
