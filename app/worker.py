"""Worker process: ``python -m app.worker``.

Boot order: tables, knowledge base (fatal if unreachable), retention cleanup,
then the worker pool with the recovery sweep running alongside it.
"""
import asyncio
import logging
import signal
import sys
from typing import Optional

from app.settings import settings
from app.logging import configure_logging
from domain.errors import FatalStartupError
from domain.services.evaluation_pipeline import EvaluationPipeline
from domain.services.recovery import recovery_sweep
from domain.services.worker_pool import WorkerPool
from infra.db.session import init_db
from infra.llm.client import ChatScoringService
from infra.pdf.parser import PdfTextExtractor
from infra.queue.job_queue import JobQueue
from infra.rag.retriever import KnowledgeBaseRetriever
from infra.repositories.jobs_repository import JobsRepository
from infra.store.state_store import StateStore

logger = logging.getLogger("worker")

HOUSEKEEPING_INTERVAL_SECONDS = 3600


async def _housekeeping(store: StateStore, queue: JobQueue, stop: asyncio.Event) -> None:
    while not stop.is_set():
        store.purge_expired()
        purged = queue.purge_failed(settings.QUEUE_FAILED_RETENTION_SECONDS)
        if purged:
            logger.info("Dropped %d failed tasks past retention", purged)
        try:
            await asyncio.wait_for(stop.wait(), timeout=HOUSEKEEPING_INTERVAL_SECONDS)
        except asyncio.TimeoutError:
            pass


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass


async def run_worker(stop: Optional[asyncio.Event] = None) -> None:
    init_db()
    retriever = KnowledgeBaseRetriever()
    await retriever.ensure_ready()
    logger.info("Knowledge base initialized from worker")

    store = StateStore()
    queue = JobQueue()
    pipeline = EvaluationPipeline(retriever, ChatScoringService(), PdfTextExtractor())
    pool = WorkerPool(queue, JobsRepository(store=store), pipeline)

    stop = stop or asyncio.Event()
    _install_signal_handlers(stop)
    sweep = asyncio.create_task(recovery_sweep(queue))
    housekeeping = asyncio.create_task(_housekeeping(store, queue, stop))
    logger.info("Starting %d workers", pool.concurrency)
    try:
        await pool.run(stop)
    finally:
        sweep.cancel()
        await asyncio.gather(sweep, housekeeping, return_exceptions=True)


def main() -> None:
    configure_logging()
    try:
        asyncio.run(run_worker())
    except FatalStartupError as exc:
        logger.error("Failed to initialize knowledge base (worker): %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
