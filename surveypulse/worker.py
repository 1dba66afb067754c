"""Standalone queue worker.

Runs the post-response processing workers and the periodic sweeps without
the HTTP API, for deployments that set ``EMBEDDED_WORKER=false`` on the
web processes.

Usage:
    python -m surveypulse.worker
"""

import asyncio
import logging
import signal

from surveypulse.core.config import settings
from surveypulse.core.logging import configure_logging
from surveypulse.db.mongodb import close_mongodb, connect_mongodb, ensure_indexes, get_mongodb
from surveypulse.db.redis import close_redis, connect_redis, get_redis
from surveypulse.integrations.notifications import SocketIONotificationSink
from surveypulse.jobs.factory import create_job_queue
from surveypulse.pipeline.factory import build_response_processor, select_llm_provider
from surveypulse.scheduler import PipelineScheduler
from surveypulse.sockets.server import sio

logger = logging.getLogger(__name__)


async def run_worker() -> None:
    """Consume the queue until SIGINT or SIGTERM."""
    configure_logging(settings.log_level)

    await connect_mongodb()
    db = get_mongodb()
    await ensure_indexes(db)
    if not await connect_redis():
        await close_mongodb()
        raise RuntimeError("A standalone worker needs a reachable Redis broker")

    # Emits only reach clients connected to this process; events are persisted either way
    notifications = SocketIONotificationSink(sio, db)
    processor = build_response_processor(
        settings, db, notifications, llm=select_llm_provider(settings)
    )
    queue = create_job_queue(processor.handle, settings, db, get_redis())
    scheduler = PipelineScheduler(db, settings, notifications)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await queue.start()
    scheduler.start()
    logger.info(f"Worker running for queue '{settings.queue_name}'")

    try:
        await stop.wait()
    finally:
        logger.info("Worker shutting down...")
        scheduler.stop()
        await queue.close()
        await close_mongodb()
        await close_redis()


if __name__ == "__main__":
    asyncio.run(run_worker())
