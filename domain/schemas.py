from datetime import datetime
from enum import Enum
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class FileRecord(BaseModel):
    id: str
    filename: str
    storage_ref: str
    uploaded_at: datetime


class UploadedFile(BaseModel):
    id: str
    filename: str


class UploadResponse(BaseModel):
    cv: UploadedFile
    project: UploadedFile


class EvaluateRequest(BaseModel):
    job_title: str = Field(..., min_length=3, max_length=100)
    cv_id: UUID
    project_report_id: UUID


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Stage outputs are validated strictly: a model answering "0.8" instead of 0.8,
# or a score outside its range, fails the stage instead of being coerced.

class CVStageResult(BaseModel):
    model_config = ConfigDict(strict=True)

    cv_match_rate: float = Field(..., ge=0.0, le=1.0)
    cv_feedback: str = Field(..., min_length=1)


class ProjectStageResult(BaseModel):
    model_config = ConfigDict(strict=True)

    project_score: float = Field(..., ge=1.0, le=5.0)
    project_feedback: str = Field(..., min_length=1)


class SummaryStageResult(BaseModel):
    model_config = ConfigDict(strict=True)

    overall_summary: str = Field(..., min_length=1)
    is_accepted: bool


class EvaluationResult(BaseModel):
    cv_match_rate: float
    cv_feedback: str
    project_score: float
    project_feedback: str
    overall_summary: str
    is_accepted: bool

    @classmethod
    def merge(cls, cv: CVStageResult, project: ProjectStageResult,
              summary: SummaryStageResult) -> "EvaluationResult":
        return cls(**cv.model_dump(), **project.model_dump(), **summary.model_dump())


class JobRecord(BaseModel):
    id: str
    status: JobStatus
    created_at: datetime
    attempts: int = 0
    result: Optional[EvaluationResult] = None
    error: Optional[str] = None


class EvaluationTask(BaseModel):
    """Queue payload; carries everything a worker needs."""
    job_id: str
    job_title: str
    cv_file: FileRecord
    project_file: FileRecord
