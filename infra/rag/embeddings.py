from typing import List
import httpx
from app.settings import settings

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


async def embed_texts_openai(texts: List[str]) -> List[List[float]]:
    if not texts:
        return []
    api_key = settings.OPENAI_API_KEY
    model = settings.OPENAI_EMBEDDING_MODEL
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is required for embeddings")
    headers = {"Authorization": f"Bearer {api_key}"}
    payload = {"model": model, "input": texts}
    async with httpx.AsyncClient(timeout=settings.REMOTE_CALL_TIMEOUT_SECONDS) as client:
        r = await client.post(OPENAI_EMBEDDINGS_URL, headers=headers, json=payload)
        r.raise_for_status()
        data = r.json()
    return [item["embedding"] for item in data["data"]]
