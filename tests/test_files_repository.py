import os

import pytest
from sqlalchemy import func, select

from domain.errors import FileTooLargeError, UnsupportedFileTypeError, ValidationError
from infra.db.models import KeyValueRecord
from infra.db.session import SessionLocal
from infra.repositories.files_repository import FilesRepository

PDF = b"%PDF-1.4\nfake pdf body"


def _record_count() -> int:
    with SessionLocal() as s:
        return s.scalar(select(func.count()).select_from(KeyValueRecord))


@pytest.fixture
def files_repo(store, clock, tmp_path) -> FilesRepository:
    return FilesRepository(store=store, storage_dir=str(tmp_path), max_bytes=64,
                           ttl_seconds=86400, clock=clock)


def test_register_stores_bytes_and_resolves(files_repo: FilesRepository):
    rec = files_repo.register("my cv.pdf", "application/pdf", PDF)

    resolved = files_repo.resolve(rec.id)
    assert resolved == rec
    assert resolved.filename == "my cv.pdf"
    with open(resolved.storage_ref, "rb") as fh:
        assert fh.read() == PDF


def test_register_assigns_distinct_ids(files_repo: FilesRepository):
    a = files_repo.register("cv.pdf", "application/pdf", PDF)
    b = files_repo.register("cv.pdf", "application/pdf", PDF)
    assert a.id != b.id


def test_resolve_unknown_id_returns_none(files_repo: FilesRepository):
    assert files_repo.resolve("00000000-0000-0000-0000-000000000000") is None


def test_records_expire_after_retention(files_repo: FilesRepository, clock):
    rec = files_repo.register("cv.pdf", "application/pdf", PDF)
    clock.advance(24 * 3600)
    assert files_repo.resolve(rec.id) is None


def test_wrong_type_rejected_without_record(files_repo: FilesRepository, tmp_path):
    with pytest.raises(UnsupportedFileTypeError):
        files_repo.register("cv.docx", "application/msword", PDF)
    assert _record_count() == 0
    assert os.listdir(tmp_path) == []


def test_oversize_rejected_without_record(files_repo: FilesRepository):
    with pytest.raises(FileTooLargeError) as exc_info:
        files_repo.register("big.pdf", "application/pdf", b"x" * 65)
    assert isinstance(exc_info.value, ValidationError)
    assert _record_count() == 0


def test_oversize_and_wrong_type_are_distinct_errors(files_repo: FilesRepository):
    with pytest.raises(ValidationError) as too_big:
        files_repo.check("big.pdf", "application/pdf", b"x" * 65)
    with pytest.raises(ValidationError) as wrong_type:
        files_repo.check("cv.txt", "text/plain", b"x")
    assert type(too_big.value) is not type(wrong_type.value)
    assert "too large" in str(too_big.value)
    assert "Only PDF" in str(wrong_type.value)
