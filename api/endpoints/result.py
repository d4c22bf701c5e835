from uuid import UUID
from fastapi import APIRouter
from api.deps import jobs_repo
from domain.errors import NotFoundError, ValidationError
from domain.schemas import JobRecord

router = APIRouter()


@router.get("/result/{job_id}", response_model=JobRecord, response_model_exclude_none=True)
async def get_result(job_id: str) -> JobRecord:
    try:
        job_id = str(UUID(job_id))
    except ValueError:
        raise ValidationError("Invalid job ID format")
    job = jobs_repo.get(job_id)
    if not job:
        raise NotFoundError("Job not found")
    return job
