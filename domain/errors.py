"""Error taxonomy shared by the API and the worker.

Admission errors (validation, not-found, rate-limit) are resolved inside the
request and mapped to 4xx responses. Pipeline errors only ever surface through
the job record.
"""
from typing import Optional


class EvaluatorError(Exception):
    """Base class for every error raised on purpose by this service."""


class ValidationError(EvaluatorError):
    """Bad input shape, type or size. Never retried."""


class FileTooLargeError(ValidationError):
    def __init__(self, filename: str, limit_bytes: int):
        super().__init__(
            f"File too large: {filename}. Maximum size is {limit_bytes // (1024 * 1024)}MB")
        self.filename = filename
        self.limit_bytes = limit_bytes


class UnsupportedFileTypeError(ValidationError):
    def __init__(self, filename: str, content_type: Optional[str]):
        super().__init__(f"Only PDF files are allowed: {filename} ({content_type or 'unknown'})")
        self.filename = filename
        self.content_type = content_type


class NotFoundError(EvaluatorError):
    """Unknown file or job id."""


class RateLimitError(EvaluatorError):
    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class TransientPipelineError(EvaluatorError):
    """A stage failed; the queue decides whether the task runs again."""

    def __init__(self, stage: str, cause: str):
        super().__init__(f"{stage} stage failed: {cause}")
        self.stage = stage
        self.cause = cause


class FatalStartupError(EvaluatorError):
    """The worker cannot start, e.g. the knowledge base is unreachable."""


class LeaseLostError(EvaluatorError):
    """The queue handed a task to another worker while this one still ran it."""

    def __init__(self, task_id: str):
        super().__init__(f"Lease on task {task_id} was lost")
        self.task_id = task_id
