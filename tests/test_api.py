import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from api import deps
from app.main import app
from domain.services.evaluation_pipeline import EvaluationPipeline
from domain.services.worker_pool import WorkerPool
from fakes import FakeExtractor, FakeRetriever, PromptAwareScorer
from infra.db.models import KeyValueRecord, QueueTask
from infra.db.session import SessionLocal

CV_PDF = b"%PDF-1.4\n3 years backend Go experience"
PROJECT_PDF = b"%PDF-1.4\nimplements REST API with tests"


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _count(model, namespace=None) -> int:
    stmt = select(func.count()).select_from(model)
    if namespace:
        stmt = stmt.where(KeyValueRecord.namespace == namespace)
    with SessionLocal() as s:
        return s.scalar(stmt)


def _upload(client, cv=("cv.pdf", CV_PDF, "application/pdf"),
            project=("project.pdf", PROJECT_PDF, "application/pdf")):
    files = {}
    if cv:
        files["cv"] = cv
    if project:
        files["project"] = project
    return client.post("/upload", files=files)


def _evaluate(client, cv_id, project_id, job_title="Backend Engineer"):
    return client.post("/evaluate", json={
        "job_title": job_title, "cv_id": cv_id, "project_report_id": project_id})


def test_upload_returns_two_distinct_ids(client):
    resp = _upload(client)

    assert resp.status_code == 200
    body = resp.json()
    assert body["cv"]["filename"] == "cv.pdf"
    assert body["project"]["filename"] == "project.pdf"
    assert body["cv"]["id"] != body["project"]["id"]
    assert deps.files_repo.resolve(body["cv"]["id"]) is not None


def test_upload_requires_both_files(client):
    resp = _upload(client, project=None)
    assert resp.status_code == 400
    assert _count(KeyValueRecord) == 0


def test_non_pdf_upload_rejected_before_any_record(client):
    resp = _upload(client, project=("notes.txt", b"plain text", "text/plain"))

    assert resp.status_code == 400
    assert "Only PDF" in resp.json()["detail"]
    assert _count(KeyValueRecord) == 0


def test_oversize_upload_rejected_before_any_record(client, monkeypatch):
    monkeypatch.setattr(deps.files_repo, "max_bytes", 16)

    resp = _upload(client)

    assert resp.status_code == 400
    assert "too large" in resp.json()["detail"]
    assert _count(KeyValueRecord) == 0


def test_eleventh_upload_in_window_is_rate_limited(client):
    for _ in range(10):
        assert _upload(client).status_code == 200
    records_before = _count(KeyValueRecord)

    resp = _upload(client)

    assert resp.status_code == 429
    assert "Retry-After" in resp.headers
    assert _count(KeyValueRecord) == records_before


def test_evaluate_queues_job(client):
    ids = _upload(client).json()

    resp = _evaluate(client, ids["cv"]["id"], ids["project"]["id"])

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "queued"
    assert uuid.UUID(body["id"])
    assert "result" not in body and "error" not in body
    assert deps.job_queue.counts()["waiting"] == 1


def test_evaluate_unknown_file_is_404_without_job(client):
    ids = _upload(client).json()

    resp = _evaluate(client, ids["cv"]["id"], str(uuid.uuid4()))

    assert resp.status_code == 404
    assert _count(KeyValueRecord, namespace="job") == 0
    assert _count(QueueTask) == 0


@pytest.mark.parametrize("payload", [
    {"job_title": "Backend Engineer", "cv_id": "not-a-uuid", "project_report_id": str(uuid.uuid4())},
    {"job_title": "BE", "cv_id": str(uuid.uuid4()), "project_report_id": str(uuid.uuid4())},
    {"cv_id": str(uuid.uuid4()), "project_report_id": str(uuid.uuid4())},
])
def test_evaluate_rejects_malformed_body(client, payload):
    resp = client.post("/evaluate", json=payload)
    assert resp.status_code == 400
    assert _count(QueueTask) == 0


def test_result_validates_and_looks_up_id(client):
    assert client.get("/result/not-a-uuid").status_code == 400
    assert client.get(f"/result/{uuid.uuid4()}").status_code == 404


def test_polling_is_idempotent(client):
    ids = _upload(client).json()
    job_id = _evaluate(client, ids["cv"]["id"], ids["project"]["id"]).json()["id"]

    first = client.get(f"/result/{job_id}").json()
    second = client.get(f"/result/{job_id}").json()

    assert first == second
    assert first["status"] == "queued"


def test_upload_evaluate_poll_end_to_end(client):
    ids = _upload(client).json()
    job_id = _evaluate(client, ids["cv"]["id"], ids["project"]["id"]).json()["id"]

    scorer = PromptAwareScorer()
    pipeline = EvaluationPipeline(FakeRetriever(), scorer, FakeExtractor(), timeout=5)
    pool = WorkerPool(deps.job_queue, deps.jobs_repo, pipeline, concurrency=1)
    assert asyncio.run(pool.run_once("test-worker")) is True

    body = client.get(f"/result/{job_id}").json()
    assert body["status"] == "completed"
    assert body["attempts"] == 1
    assert "error" not in body
    result = body["result"]
    assert 0 <= result["cv_match_rate"] <= 1
    assert result["cv_feedback"]
    assert 1 <= result["project_score"] <= 5
    assert result["overall_summary"]
    assert isinstance(result["is_accepted"], bool)
    assert scorer.calls == 3


def test_failed_job_exposes_error(client):
    ids = _upload(client).json()
    job_id = _evaluate(client, ids["cv"]["id"], ids["project"]["id"]).json()["id"]

    scorer = PromptAwareScorer(cv={"cv_match_rate": 2.0, "cv_feedback": "impossible"})
    pipeline = EvaluationPipeline(FakeRetriever(), scorer, FakeExtractor(), timeout=5)
    pool = WorkerPool(deps.job_queue, deps.jobs_repo, pipeline, concurrency=1)
    asyncio.run(pool.run_once("test-worker"))

    body = client.get(f"/result/{job_id}").json()
    assert body["status"] == "failed"
    assert "cv stage failed" in body["error"]
    assert "result" not in body
