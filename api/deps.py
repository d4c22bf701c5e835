from fastapi import Request
from app.settings import settings
from domain.services.admission import RouteQuota, SlidingWindowRateLimiter
from infra.queue.job_queue import JobQueue
from infra.repositories.files_repository import FilesRepository
from infra.repositories.jobs_repository import JobsRepository

files_repo = FilesRepository()
jobs_repo = JobsRepository()
job_queue = JobQueue()
rate_limiter = SlidingWindowRateLimiter()

UPLOAD_QUOTA = RouteQuota(
    route="upload",
    max_requests=settings.UPLOAD_RATE_LIMIT,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    message="Too many uploads, please try again later",
)
EVALUATE_QUOTA = RouteQuota(
    route="evaluate",
    max_requests=settings.EVALUATE_RATE_LIMIT,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    message="Too many evaluation requests, please try again later",
)


def client_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def upload_rate_limit(request: Request) -> None:
    rate_limiter.check(UPLOAD_QUOTA, client_identity(request))


def evaluate_rate_limit(request: Request) -> None:
    rate_limiter.check(EVALUATE_QUOTA, client_identity(request))
