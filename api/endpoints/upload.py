from fastapi import APIRouter, Depends, UploadFile, File
from typing import Optional
from app.settings import settings
from api.deps import files_repo, upload_rate_limit
from domain.errors import ValidationError
from domain.schemas import UploadedFile, UploadResponse

router = APIRouter()


async def _read_capped(f: UploadFile) -> bytes:
    # one byte past the ceiling is enough to know the file is too large
    return await f.read(settings.MAX_UPLOAD_BYTES + 1)


@router.post("/upload", response_model=UploadResponse,
             dependencies=[Depends(upload_rate_limit)])
async def upload(cv: Optional[UploadFile] = File(default=None),
                 project: Optional[UploadFile] = File(default=None)) -> UploadResponse:
    if not cv or not project:
        raise ValidationError("Both CV and project files are required")

    files = [(cv.filename or "cv.pdf", cv.content_type, await _read_capped(cv)),
             (project.filename or "project.pdf", project.content_type, await _read_capped(project))]
    # both files are checked before either is stored
    for name, content_type, content in files:
        files_repo.check(name, content_type, content)

    cv_rec, project_rec = (files_repo.register(*f) for f in files)
    return UploadResponse(
        cv=UploadedFile(id=cv_rec.id, filename=cv_rec.filename),
        project=UploadedFile(id=project_rec.id, filename=project_rec.filename),
    )
