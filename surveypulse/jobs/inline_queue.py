"""In-process queue used when no Redis broker is reachable.

Jobs run synchronously inside ``enqueue``. Retries happen immediately
because there is no broker to hold a delayed job.
"""

import logging
from typing import Any

from surveypulse.core.logging import log_context
from surveypulse.jobs.base import (
    DeadLetterEntry,
    DeadLetterSink,
    Job,
    JobHandler,
    JobQueue,
    is_retryable,
)

logger = logging.getLogger(__name__)


class InlineJobQueue(JobQueue):
    """Runs each job to completion as it is enqueued."""

    def __init__(
        self,
        name: str,
        handler: JobHandler,
        dead_letters: DeadLetterSink,
        max_attempts: int = 3,
    ):
        self.name = name
        self._handler = handler
        self._dead_letters = dead_letters
        self._max_attempts = max_attempts

    async def enqueue(self, payload: dict[str, Any], job_id: str | None = None) -> Job:
        """Run the job now. Failures are dead-lettered, never raised."""
        job = Job(name=self.name, payload=payload, max_attempts=self._max_attempts)
        if job_id:
            job.id = job_id
        context = log_context(job_id=job.id, response_id=payload.get("response_id"))

        while True:
            job.attempts_made += 1
            try:
                await self._handler(job)
                return job
            except Exception as e:
                job.last_error = str(e) or e.__class__.__name__
                if is_retryable(e) and job.attempts_made < job.max_attempts:
                    logger.warning(
                        f"Inline job attempt {job.attempts_made}/{job.max_attempts} "
                        f"failed, retrying: {job.last_error}",
                        extra=context,
                    )
                    continue
                break

        await self._dead_letters.record(DeadLetterEntry.from_job(job, job.last_error))
        logger.error(
            f"Inline job moved to dead-letter storage: {job.last_error}", extra=context
        )
        return job

    async def start(self) -> None:
        logger.warning(f"Queue '{self.name}' running in-process without a broker")

    async def close(self) -> None:
        pass
