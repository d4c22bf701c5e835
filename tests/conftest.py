from __future__ import annotations

import os
import tempfile
from datetime import datetime
from typing import Callable

# Point settings at a throwaway database before anything imports app.settings.
_TMP_DIR = tempfile.mkdtemp(prefix="cv-evaluator-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.sqlite3')}"
os.environ["STORAGE_DIR"] = os.path.join(_TMP_DIR, "storage")

import pytest
from sqlalchemy import delete

from domain.schemas import EvaluationTask, FileRecord
from fakes import FakeClock, FakeExtractor
from infra.db.models import KeyValueRecord, QueueTask, RateLimitHit
from infra.db.session import SessionLocal, init_db
from infra.queue.job_queue import JobQueue
from infra.repositories.jobs_repository import JobsRepository
from infra.store.state_store import StateStore


@pytest.fixture(autouse=True)
def clean_db():
    init_db()
    with SessionLocal() as s:
        for model in (KeyValueRecord, QueueTask, RateLimitHit):
            s.execute(delete(model))
        s.commit()
    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 1, 12, 0, 0))


@pytest.fixture
def store(clock: FakeClock) -> StateStore:
    return StateStore(clock=clock)


@pytest.fixture
def jobs_repo(store: StateStore, clock: FakeClock) -> JobsRepository:
    return JobsRepository(store=store, ttl_seconds=86400, clock=clock)


@pytest.fixture
def queue(clock: FakeClock) -> JobQueue:
    return JobQueue(max_attempts=3, backoff_base_seconds=5, lease_seconds=300, clock=clock)


@pytest.fixture
def make_task(jobs_repo: JobsRepository, clock: FakeClock) -> Callable[..., EvaluationTask]:
    def _make(job_title: str = "Backend Engineer") -> EvaluationTask:
        job = jobs_repo.create_job()
        return EvaluationTask(
            job_id=job.id,
            job_title=job_title,
            cv_file=FileRecord(id="cv-1", filename="cv.pdf",
                               storage_ref="mem://cv", uploaded_at=clock()),
            project_file=FileRecord(id="project-1", filename="project.pdf",
                                    storage_ref="mem://project", uploaded_at=clock()),
        )
    return _make


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor({
        "mem://cv": "3 years backend Go experience",
        "mem://project": "implements REST API with tests",
    })
