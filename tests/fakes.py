from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeRetriever:
    def __init__(self, passages: list[str] | None = None, error: Exception | None = None):
        self.passages = passages if passages is not None else ["reference passage"]
        self.error = error
        self.queries: list[str] = []

    async def query(self, text: str) -> list[str]:
        self.queries.append(text)
        if self.error:
            raise self.error
        return list(self.passages)


class ScriptedScorer:
    """Returns queued responses in order; dicts are serialized to JSON."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        self.calls.append({"system": system_prompt, "user": user_prompt, "temperature": temperature})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return await response()
        return response if isinstance(response, str) else json.dumps(response)


class FakeExtractor:
    def __init__(self, texts: dict[str, str] | None = None):
        self.texts = texts or {}

    def extract(self, storage_ref: str) -> str:
        if storage_ref in self.texts:
            return self.texts[storage_ref]
        with open(storage_ref, "rb") as fh:
            return fh.read().decode("utf-8", errors="ignore")


CV_OK = {"cv_match_rate": 0.72, "cv_feedback": "Solid backend experience with Go."}
PROJECT_OK = {"project_score": 4.0, "project_feedback": "REST API is complete and tested."}
SUMMARY_OK = {"overall_summary": "Strong candidate with relevant experience.", "is_accepted": True}


class PromptAwareScorer:
    """Answers by stage, so concurrent pipelines can share one instance."""

    def __init__(self, cv=CV_OK, project=PROJECT_OK, summary=SUMMARY_OK):
        self.cv, self.project, self.summary = cv, project, summary
        self.calls = 0

    async def complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        self.calls += 1
        if "is_accepted" in system_prompt:
            return json.dumps(self.summary)
        if "project_score" in system_prompt:
            return json.dumps(self.project)
        return json.dumps(self.cv)
