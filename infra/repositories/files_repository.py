import os
import uuid
import logging
from datetime import datetime
from typing import Callable, Optional
from app.settings import settings
from domain.errors import FileTooLargeError, UnsupportedFileTypeError, ValidationError
from domain.schemas import FileRecord
from infra.db.models import utcnow
from infra.store.state_store import StateStore, FILES_NAMESPACE

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class FilesRepository:
    """Registry of uploaded artifacts.

    Records are immutable and disappear after ``FILE_TTL_SECONDS``; there is
    no delete operation.
    """

    def __init__(self, store: Optional[StateStore] = None, storage_dir: Optional[str] = None,
                 max_bytes: Optional[int] = None, ttl_seconds: Optional[int] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store or StateStore()
        self.storage_dir = storage_dir or settings.STORAGE_DIR
        self.max_bytes = max_bytes or settings.MAX_UPLOAD_BYTES
        self.ttl_seconds = ttl_seconds or settings.FILE_TTL_SECONDS
        self._clock = clock

    def check(self, filename: str, content_type: Optional[str], content: bytes) -> None:
        if content_type != PDF_CONTENT_TYPE:
            raise UnsupportedFileTypeError(filename, content_type)
        if len(content) > self.max_bytes:
            raise FileTooLargeError(filename, self.max_bytes)
        if not content:
            raise ValidationError(f"Empty file: {filename}")

    def register(self, filename: str, content_type: Optional[str], content: bytes) -> FileRecord:
        self.check(filename, content_type, content)
        fid = str(uuid.uuid4())
        os.makedirs(self.storage_dir, exist_ok=True)
        path = os.path.join(self.storage_dir, f"{fid}.pdf")
        with open(path, "wb") as out:
            out.write(content)
        rec = FileRecord(id=fid, filename=filename, storage_ref=path, uploaded_at=self._clock())
        self.store.set(FILES_NAMESPACE, fid, rec.model_dump(mode="json"), self.ttl_seconds)
        logger.info("Registered file %s (%s, %d bytes)", fid, filename, len(content))
        return rec

    def resolve(self, file_id: str) -> Optional[FileRecord]:
        data = self.store.get(FILES_NAMESPACE, file_id)
        return FileRecord.model_validate(data) if data else None
