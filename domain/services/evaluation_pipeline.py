import re
import json
import asyncio
import logging
from typing import Awaitable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as SchemaError

from app.settings import settings
from domain.errors import TransientPipelineError
from domain.interfaces import Retriever, ScoringService, TextExtractor
from domain.schemas import (
    CVStageResult,
    EvaluationResult,
    EvaluationTask,
    ProjectStageResult,
    SummaryStageResult,
)
from infra.llm.prompts import (
    CV_EVAL_PROMPT,
    CV_PASSING_RATE,
    CV_REFERENCE_QUERY,
    FINAL_SUMMARY_PROMPT,
    PROJECT_EVAL_PROMPT,
    PROJECT_PASSING_SCORE,
    PROJECT_REFERENCE_QUERY,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")

CV_STAGE = "cv"
PROJECT_STAGE = "project"
SUMMARY_STAGE = "summary"

SCORING_TEMPERATURE = 0.0
SUMMARY_TEMPERATURE = 0.1
MAX_DOCUMENT_CHARS = 5000


def redact_numeric_examples(text: str) -> str:
    # remove json-like examples with numeric scores to prevent bias
    text = re.sub(r'\{[^{}]{0,200}("project_score"|\'project_score\')[^{}]+\}',
                  '[redacted-example]', text, flags=re.I | re.S)
    text = re.sub(r'\{[^{}]{0,200}("cv_match_rate"|\'cv_match_rate\')[^{}]+\}',
                  '[redacted-example]', text, flags=re.I | re.S)
    return text


def build_context(passages: List[str]) -> str:
    return "\n".join(redact_numeric_examples(p) for p in passages)


def parse_stage_output(stage: str, raw: str, model: Type[T]) -> T:
    try:
        return model.model_validate_json(raw)
    except SchemaError as exc:
        raise TransientPipelineError(stage, f"model output failed validation: {exc}") from exc


class EvaluationPipeline:
    """CV stage, then project stage, then summary stage; never reordered.

    Every remote call is bounded by ``timeout`` seconds. Any failure aborts the
    remaining stages and surfaces as a single TransientPipelineError.
    """

    def __init__(self, retriever: Retriever, scorer: ScoringService, extractor: TextExtractor,
                 timeout: Optional[float] = None):
        self.retriever = retriever
        self.scorer = scorer
        self.extractor = extractor
        self.timeout = timeout or settings.REMOTE_CALL_TIMEOUT_SECONDS

    async def run(self, task: EvaluationTask) -> EvaluationResult:
        logger.info("Evaluating job %s (%s)", task.job_id, task.job_title)
        cv = await self.evaluate_cv(task)
        logger.info("Job %s cv stage: match_rate=%.2f", task.job_id, cv.cv_match_rate)
        project = await self.evaluate_project(task)
        logger.info("Job %s project stage: score=%.2f", task.job_id, project.project_score)
        summary = await self.summarize(cv, project)
        logger.info("Job %s summary stage: accepted=%s", task.job_id, summary.is_accepted)
        return EvaluationResult.merge(cv, project, summary)

    async def _bounded(self, stage: str, what: str, call: Awaitable[R]) -> R:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransientPipelineError(stage, f"{what} timed out after {self.timeout:g}s") from exc
        except TransientPipelineError:
            raise
        except Exception as exc:
            raise TransientPipelineError(stage, f"{what} failed: {exc}") from exc

    async def _extract(self, stage: str, storage_ref: str) -> str:
        text = await self._bounded(
            stage, "text extraction", asyncio.to_thread(self.extractor.extract, storage_ref))
        return text[:MAX_DOCUMENT_CHARS]

    async def evaluate_cv(self, task: EvaluationTask) -> CVStageResult:
        cv_text = await self._extract(CV_STAGE, task.cv_file.storage_ref)
        passages = await self._bounded(
            CV_STAGE, "retrieval",
            self.retriever.query(CV_REFERENCE_QUERY.format(job_title=task.job_title)))
        user_prompt = (
            f"Job Title: {task.job_title}\n\n"
            f"Candidate CV:\n{cv_text}\n\n"
            f"Reference Documents:\n{build_context(passages)}"
        )
        raw = await self._bounded(
            CV_STAGE, "scoring call",
            self.scorer.complete(CV_EVAL_PROMPT, user_prompt, SCORING_TEMPERATURE))
        return parse_stage_output(CV_STAGE, raw, CVStageResult)

    async def evaluate_project(self, task: EvaluationTask) -> ProjectStageResult:
        project_text = await self._extract(PROJECT_STAGE, task.project_file.storage_ref)
        passages = await self._bounded(
            PROJECT_STAGE, "retrieval", self.retriever.query(PROJECT_REFERENCE_QUERY))
        user_prompt = (
            f"Candidate Project:\n{project_text}\n\n"
            f"Reference Documents:\n{build_context(passages)}"
        )
        raw = await self._bounded(
            PROJECT_STAGE, "scoring call",
            self.scorer.complete(PROJECT_EVAL_PROMPT, user_prompt, SCORING_TEMPERATURE))
        return parse_stage_output(PROJECT_STAGE, raw, ProjectStageResult)

    async def summarize(self, cv: CVStageResult, project: ProjectStageResult) -> SummaryStageResult:
        # only the structured stage outputs go in, never the documents
        system_prompt = FINAL_SUMMARY_PROMPT.format(
            cv_pass=CV_PASSING_RATE, project_pass=PROJECT_PASSING_SCORE)
        user_prompt = (
            f"CV: {json.dumps(cv.model_dump())}\n"
            f"Project: {json.dumps(project.model_dump())}"
        )
        raw = await self._bounded(
            SUMMARY_STAGE, "scoring call",
            self.scorer.complete(system_prompt, user_prompt, SUMMARY_TEMPERATURE))
        return parse_stage_output(SUMMARY_STAGE, raw, SummaryStageResult)
