import uuid
import logging
from datetime import datetime
from typing import Callable, Optional
from app.settings import settings
from domain.schemas import EvaluationResult, JobRecord, JobStatus
from infra.db.models import utcnow
from infra.store.state_store import StateStore, JOBS_NAMESPACE

logger = logging.getLogger(__name__)


class JobsRepository:
    """Job lifecycle records.

    Each write is a whole-record replace of ``job:<id>`` and resets the TTL.
    ``result`` is only ever set together with ``completed`` and ``error``
    only with ``failed``.
    """

    def __init__(self, store: Optional[StateStore] = None, ttl_seconds: Optional[int] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store or StateStore()
        self.ttl_seconds = ttl_seconds or settings.JOB_TTL_SECONDS
        self._clock = clock

    def _save(self, job: JobRecord) -> JobRecord:
        self.store.set(JOBS_NAMESPACE, job.id, job.model_dump(mode="json"), self.ttl_seconds)
        return job

    def create_job(self) -> JobRecord:
        job = JobRecord(id=str(uuid.uuid4()), status=JobStatus.QUEUED, created_at=self._clock())
        return self._save(job)

    def get(self, job_id: str) -> Optional[JobRecord]:
        data = self.store.get(JOBS_NAMESPACE, job_id)
        return JobRecord.model_validate(data) if data else None

    def mark_processing(self, job_id: str) -> JobRecord:
        job = self.get(job_id)
        if job is None:
            # record expired while the task was still queued
            logger.warning("Job %s has no record, recreating", job_id)
            job = JobRecord(id=job_id, status=JobStatus.QUEUED, created_at=self._clock())
        job = job.model_copy(update={
            "status": JobStatus.PROCESSING,
            "attempts": job.attempts + 1,
            "result": None,
            "error": None,
        })
        return self._save(job)

    def complete(self, job_id: str, result: EvaluationResult) -> JobRecord:
        job = self._require(job_id)
        job = job.model_copy(update={
            "status": JobStatus.COMPLETED, "result": result, "error": None})
        return self._save(job)

    def fail(self, job_id: str, error: str) -> JobRecord:
        job = self._require(job_id)
        job = job.model_copy(update={
            "status": JobStatus.FAILED, "result": None, "error": error})
        return self._save(job)

    def _require(self, job_id: str) -> JobRecord:
        job = self.get(job_id)
        if job is None:
            job = JobRecord(id=job_id, status=JobStatus.PROCESSING, created_at=self._clock())
        return job
