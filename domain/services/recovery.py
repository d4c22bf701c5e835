import asyncio
import logging
from typing import Awaitable, Callable, Optional

from app.settings import settings
from infra.queue.job_queue import JobQueue

logger = logging.getLogger(__name__)


async def recovery_sweep(queue: JobQueue, delay_seconds: Optional[float] = None,
                         sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> int:
    """Re-enqueue every task in the failed set with a fresh attempt budget.

    Runs once at worker startup. Items are spaced ``delay_seconds`` apart so a
    restart does not hit the scoring service with the whole backlog at once.
    """
    delay = settings.RECOVERY_DELAY_SECONDS if delay_seconds is None else delay_seconds
    failed = queue.list_failed()
    if not failed:
        logger.info("No failed jobs found.")
        return 0

    logger.info("Found %d failed jobs, retrying...", len(failed))
    retried = 0
    for i, info in enumerate(failed):
        if queue.retry_failed(info.task_id):
            retried += 1
        if i < len(failed) - 1:
            await sleep(delay)
    logger.info("Recovery sweep re-enqueued %d jobs", retried)
    return retried
