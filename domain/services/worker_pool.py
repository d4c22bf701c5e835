import asyncio
import logging
import os
import socket
from typing import Optional

from app.settings import settings
from domain.errors import LeaseLostError
from domain.schemas import EvaluationResult
from domain.services.evaluation_pipeline import EvaluationPipeline
from infra.queue.job_queue import Delivery, JobQueue
from infra.repositories.jobs_repository import JobsRepository

logger = logging.getLogger(__name__)


class WorkerPool:
    """Consumers of the evaluation queue.

    Each worker handles one delivery at a time. The job record is moved to
    ``processing`` before any remote call, then to ``completed`` or ``failed``.
    A ``failed`` job stays provisional while the queue still has attempts
    left for its task.

    While the pipeline runs, the worker renews its lease every
    ``heartbeat_interval`` seconds. If the lease is gone anyway the run is
    abandoned without touching the job, which by then belongs to another worker.
    """

    def __init__(self, queue: JobQueue, jobs_repo: JobsRepository, pipeline: EvaluationPipeline,
                 concurrency: Optional[int] = None, poll_interval: Optional[float] = None,
                 heartbeat_interval: Optional[float] = None):
        self.queue = queue
        self.jobs = jobs_repo
        self.pipeline = pipeline
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY
        self.poll_interval = (settings.QUEUE_POLL_INTERVAL_SECONDS
                              if poll_interval is None else poll_interval)
        self.heartbeat_interval = heartbeat_interval or queue.lease_seconds / 3
        self._prefix = f"{socket.gethostname()}:{os.getpid()}"

    def worker_id(self, index: int) -> str:
        return f"{self._prefix}:{index}"

    def reclaim_stalled(self) -> int:
        """Fail the jobs whose worker stopped renewing its lease."""
        released = self.queue.release_stalled()
        for info in released:
            self.jobs.fail(info.job_id, info.last_error)
        return len(released)

    async def _keep_lease(self, delivery: Delivery) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if not self.queue.extend(delivery):
                return

    async def _run_leased(self, delivery: Delivery) -> EvaluationResult:
        run = asyncio.create_task(self.pipeline.run(delivery.task))
        heartbeat = asyncio.create_task(self._keep_lease(delivery))
        try:
            await asyncio.wait({run, heartbeat}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            heartbeat.cancel()
            if not run.done():
                run.cancel()
            await asyncio.gather(run, heartbeat, return_exceptions=True)
        if run.cancelled():
            raise LeaseLostError(delivery.task_id)
        return run.result()

    async def process(self, delivery: Delivery) -> bool:
        task = delivery.task
        self.jobs.mark_processing(task.job_id)
        try:
            result = await self._run_leased(delivery)
        except LeaseLostError as exc:
            logger.warning("Job %s abandoned by %s: %s", task.job_id, delivery.worker_id, exc)
            return False
        except Exception as exc:
            cause = str(exc) or type(exc).__name__
            logger.warning("Job %s attempt %d/%d failed: %s",
                           task.job_id, delivery.attempt, delivery.max_attempts, cause)
            self.jobs.fail(task.job_id, cause)
            self.queue.fail(delivery, cause)
            return False
        self.jobs.complete(task.job_id, result)
        self.queue.complete(delivery)
        logger.info("Job %s completed on attempt %d", task.job_id, delivery.attempt)
        return True

    async def run_once(self, worker_id: str) -> bool:
        """Handle at most one ready task. Returns False when the queue had none."""
        self.reclaim_stalled()
        delivery = self.queue.reserve(worker_id)
        if delivery is None:
            return False
        await self.process(delivery)
        return True

    async def _worker_loop(self, worker_id: str, stop: asyncio.Event) -> None:
        logger.info("Worker %s started", worker_id)
        while not stop.is_set():
            try:
                handled = await self.run_once(worker_id)
            except Exception:
                # queue/store trouble; the lease brings the task back later
                logger.exception("Worker %s loop error", worker_id)
                handled = False
            if handled:
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Worker %s stopped", worker_id)

    async def run(self, stop: asyncio.Event) -> None:
        await asyncio.gather(*(
            self._worker_loop(self.worker_id(i), stop) for i in range(self.concurrency)
        ))
