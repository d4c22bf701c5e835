import logging
from typing import Dict, List, Optional

import httpx

from app.settings import settings

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
OPENROUTER_CHAT_URL = "https://openrouter.ai/api/v1/chat/completions"


async def _post_json(url: str, headers: Dict[str, str], payload: Dict, *, timeout: float) -> Dict:
    # no retry loop here: failed calls fail the stage and the queue schedules the retry
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(url, headers=headers, json=payload)
    response.raise_for_status()
    return response.json()


class ChatScoringService:
    """Scoring calls against an OpenAI-compatible chat completions API.

    OpenAI is used when ``OPENAI_API_KEY`` is set, OpenRouter otherwise.
    """

    def __init__(self, openai_api_key: Optional[str] = None, openrouter_api_key: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.openai_api_key = openai_api_key or settings.OPENAI_API_KEY
        self.openrouter_api_key = openrouter_api_key or settings.OPENROUTER_API_KEY
        self.timeout = timeout or settings.REMOTE_CALL_TIMEOUT_SECONDS

    def _endpoint(self):
        if self.openai_api_key:
            return OPENAI_CHAT_URL, settings.OPENAI_MODEL, {
                "Authorization": f"Bearer {self.openai_api_key}"}
        if self.openrouter_api_key:
            return OPENROUTER_CHAT_URL, settings.OPENROUTER_MODEL, {
                "Authorization": f"Bearer {self.openrouter_api_key}",
                "HTTP-Referer": "http://localhost",
                "X-Title": settings.APP_NAME,
            }
        raise RuntimeError("No LLM provider configured")

    async def complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        url, model, headers = self._endpoint()
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }
        data = await _post_json(url, headers, payload, timeout=self.timeout)
        content = data["choices"][0]["message"]["content"]
        logger.debug("Model %s answered %d chars", model, len(content or ""))
        return content or ""
