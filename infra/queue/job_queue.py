"""Durable evaluation queue on top of the shared database.

Tasks move through three states::

    waiting --reserve--> active --complete--> (deleted)
       ^                   |
       +------fail---------+   attempts left: back off, wait again
                           +-> failed          budget spent: failed set

A reservation is a lease. A live worker renews it with ``extend``; when a
worker dies the lease runs out and ``release_stalled`` treats the run as a
failed attempt, so delivery is at-least-once.
"""
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
from sqlalchemy import delete, func, select, update
from app.settings import settings
from domain.schemas import EvaluationTask
from infra.db.session import SessionLocal
from infra.db.models import QueueTask, utcnow

logger = logging.getLogger(__name__)

WAITING = "waiting"
ACTIVE = "active"
FAILED = "failed"

_CLAIM_BATCH = 5
LEASE_EXPIRED = "lease expired"


@dataclass
class Delivery:
    task_id: str
    worker_id: str
    attempt: int
    max_attempts: int
    task: EvaluationTask


@dataclass
class TaskInfo:
    task_id: str
    job_id: str
    state: str
    attempts: int
    max_attempts: int
    available_at: datetime
    last_error: Optional[str]
    finished_at: Optional[datetime]


def _info(row: QueueTask) -> TaskInfo:
    return TaskInfo(
        task_id=row.id, job_id=row.job_id, state=row.state, attempts=row.attempts,
        max_attempts=row.max_attempts, available_at=row.available_at,
        last_error=row.last_error, finished_at=row.finished_at,
    )


class JobQueue:
    def __init__(self, name: str = "evaluation", session_factory=SessionLocal,
                 max_attempts: Optional[int] = None, backoff_base_seconds: Optional[float] = None,
                 lease_seconds: Optional[int] = None, clock: Callable[[], datetime] = utcnow):
        self.name = name
        self._session_factory = session_factory
        self.max_attempts = max_attempts or settings.QUEUE_MAX_ATTEMPTS
        self.backoff_base_seconds = (settings.QUEUE_BACKOFF_BASE_SECONDS
                                     if backoff_base_seconds is None else backoff_base_seconds)
        self.lease_seconds = lease_seconds or settings.QUEUE_LEASE_SECONDS
        self._clock = clock

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the run that follows failed attempt number ``attempt``."""
        return self.backoff_base_seconds * (2 ** (attempt - 1))

    def enqueue(self, task: EvaluationTask) -> str:
        task_id = str(uuid.uuid4())
        now = self._clock()
        with self._session_factory() as s:
            s.add(QueueTask(
                id=task_id, queue=self.name, job_id=task.job_id,
                payload=task.model_dump(mode="json"), state=WAITING, attempts=0,
                max_attempts=self.max_attempts, available_at=now, created_at=now,
            ))
            s.commit()
        logger.info("Enqueued task %s for job %s", task_id, task.job_id)
        return task_id

    def reserve(self, worker_id: str) -> Optional[Delivery]:
        """Claim the oldest ready task, or return None when nothing is ready."""
        now = self._clock()
        with self._session_factory() as s:
            candidates = s.scalars(
                select(QueueTask.id)
                .where(QueueTask.queue == self.name,
                       QueueTask.state == WAITING,
                       QueueTask.available_at <= now)
                .order_by(QueueTask.available_at, QueueTask.created_at)
                .limit(_CLAIM_BATCH)
            ).all()
            for task_id in candidates:
                # conditional update: only one worker can move a row out of 'waiting'
                res = s.execute(
                    update(QueueTask)
                    .where(QueueTask.id == task_id, QueueTask.state == WAITING)
                    .values(state=ACTIVE, attempts=QueueTask.attempts + 1,
                            worker_id=worker_id,
                            lease_expires_at=now + timedelta(seconds=self.lease_seconds))
                )
                s.commit()
                if res.rowcount != 1:
                    continue
                row = s.get(QueueTask, task_id, populate_existing=True)
                logger.info("Worker %s reserved task %s (job %s, attempt %d/%d)",
                            worker_id, row.id, row.job_id, row.attempts, row.max_attempts)
                return Delivery(
                    task_id=row.id, worker_id=worker_id, attempt=row.attempts,
                    max_attempts=row.max_attempts,
                    task=EvaluationTask.model_validate(row.payload),
                )
        return None

    def complete(self, delivery: Delivery) -> None:
        with self._session_factory() as s:
            res = s.execute(delete(QueueTask).where(
                QueueTask.id == delivery.task_id,
                QueueTask.state == ACTIVE,
                QueueTask.worker_id == delivery.worker_id))
            s.commit()
        if res.rowcount != 1:
            logger.warning("Task %s completed after its lease was lost", delivery.task_id)

    def fail(self, delivery: Delivery, error: str) -> bool:
        """Record a failed attempt. Returns True when another attempt is scheduled."""
        now = self._clock()
        with self._session_factory() as s:
            row = s.get(QueueTask, delivery.task_id)
            if row is None or row.state != ACTIVE or row.worker_id != delivery.worker_id:
                logger.warning("Task %s failed after its lease was lost", delivery.task_id)
                return False
            row.last_error = error
            row.lease_expires_at = None
            row.worker_id = None
            if row.attempts < row.max_attempts:
                delay = self.backoff_delay(row.attempts)
                row.state = WAITING
                row.available_at = now + timedelta(seconds=delay)
                s.commit()
                logger.warning("Task %s attempt %d/%d failed, retrying in %.1fs: %s",
                               delivery.task_id, delivery.attempt, row.max_attempts, delay, error)
                return True
            row.state = FAILED
            row.finished_at = now
            s.commit()
        logger.error("Task %s exhausted %d attempts: %s",
                     delivery.task_id, delivery.max_attempts, error)
        return False

    def extend(self, delivery: Delivery) -> bool:
        """Renew the lease. Returns False once the task belongs to someone else."""
        now = self._clock()
        with self._session_factory() as s:
            res = s.execute(
                update(QueueTask)
                .where(QueueTask.id == delivery.task_id,
                       QueueTask.state == ACTIVE,
                       QueueTask.worker_id == delivery.worker_id)
                .values(lease_expires_at=now + timedelta(seconds=self.lease_seconds))
            )
            s.commit()
        return res.rowcount == 1

    def release_stalled(self) -> List[TaskInfo]:
        """Count every expired lease as a failed attempt.

        Tasks with attempts left wait out the usual backoff; the rest move to
        the failed set. Returns the released tasks so their jobs can be updated.
        """
        now = self._clock()
        released = []
        with self._session_factory() as s:
            stalled = s.execute(
                select(QueueTask.id, QueueTask.worker_id, QueueTask.attempts, QueueTask.max_attempts)
                .where(QueueTask.queue == self.name,
                       QueueTask.state == ACTIVE,
                       QueueTask.lease_expires_at < now)
            ).all()
            for task_id, worker_id, attempts, max_attempts in stalled:
                values = dict(worker_id=None, lease_expires_at=None, last_error=LEASE_EXPIRED)
                if attempts >= max_attempts:
                    values.update(state=FAILED, finished_at=now)
                else:
                    delay = self.backoff_delay(attempts)
                    values.update(state=WAITING, available_at=now + timedelta(seconds=delay))
                # the owner may have renewed meanwhile, or another worker released it
                res = s.execute(
                    update(QueueTask)
                    .where(QueueTask.id == task_id,
                           QueueTask.state == ACTIVE,
                           QueueTask.worker_id == worker_id,
                           QueueTask.lease_expires_at < now)
                    .values(**values)
                )
                s.commit()
                if res.rowcount != 1:
                    continue
                if values["state"] == FAILED:
                    logger.error("Stalled task %s moved to failed set", task_id)
                else:
                    logger.warning("Stalled task %s returned to the queue, retrying in %.1fs",
                                   task_id, delay)
                released.append(_info(s.get(QueueTask, task_id, populate_existing=True)))
        return released

    def get(self, task_id: str) -> Optional[TaskInfo]:
        with self._session_factory() as s:
            row = s.get(QueueTask, task_id)
            return _info(row) if row else None

    def list_failed(self) -> List[TaskInfo]:
        with self._session_factory() as s:
            rows = s.scalars(
                select(QueueTask)
                .where(QueueTask.queue == self.name, QueueTask.state == FAILED)
                .order_by(QueueTask.finished_at)
            ).all()
            return [_info(r) for r in rows]

    def retry_failed(self, task_id: str) -> bool:
        """Move one task from the failed set back to the queue with a fresh budget."""
        with self._session_factory() as s:
            res = s.execute(
                update(QueueTask)
                .where(QueueTask.id == task_id, QueueTask.state == FAILED)
                .values(state=WAITING, attempts=0, available_at=self._clock(),
                        finished_at=None, worker_id=None, lease_expires_at=None)
            )
            s.commit()
        if res.rowcount == 1:
            logger.info("Re-enqueued failed task %s", task_id)
            return True
        return False

    def purge_failed(self, older_than_seconds: int) -> int:
        cutoff = self._clock() - timedelta(seconds=older_than_seconds)
        with self._session_factory() as s:
            res = s.execute(delete(QueueTask).where(
                QueueTask.queue == self.name,
                QueueTask.state == FAILED,
                QueueTask.finished_at < cutoff))
            s.commit()
        return res.rowcount or 0

    def counts(self) -> Dict[str, int]:
        with self._session_factory() as s:
            rows = s.execute(
                select(QueueTask.state, func.count())
                .where(QueueTask.queue == self.name)
                .group_by(QueueTask.state)
            ).all()
        out = {WAITING: 0, ACTIVE: 0, FAILED: 0}
        out.update({state: n for state, n in rows})
        return out
