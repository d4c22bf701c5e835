import logging
from fastapi import APIRouter, Depends
from api.deps import evaluate_rate_limit, files_repo, job_queue, jobs_repo
from domain.errors import NotFoundError
from domain.schemas import EvaluateRequest, EvaluationTask, JobRecord

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/evaluate", response_model=JobRecord, response_model_exclude_none=True,
             dependencies=[Depends(evaluate_rate_limit)])
async def evaluate(body: EvaluateRequest) -> JobRecord:
    cv_file = files_repo.resolve(str(body.cv_id))
    project_file = files_repo.resolve(str(body.project_report_id))
    if not cv_file or not project_file:
        raise NotFoundError("File not found")

    job = jobs_repo.create_job()
    job_queue.enqueue(EvaluationTask(
        job_id=job.id,
        job_title=body.job_title,
        cv_file=cv_file,
        project_file=project_file,
    ))
    logger.info("Job %s queued for %r", job.id, body.job_title)
    return job
