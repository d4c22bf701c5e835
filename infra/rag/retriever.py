import asyncio
import logging
from typing import List, Optional
from app.settings import settings
from domain.errors import FatalStartupError
from infra.rag.embeddings import embed_texts_openai
from infra.rag.knowledge_base import ingest_knowledge_base
from infra.rag.qdrant_client import count_points, ensure_collection, search_top_k

logger = logging.getLogger(__name__)


class KnowledgeBaseRetriever:
    """Top-k passage lookup in the Qdrant knowledge base collection."""

    def __init__(self, collection: Optional[str] = None, top_k: Optional[int] = None):
        self.collection = collection or settings.KB_COLLECTION
        self.top_k = top_k or settings.RETRIEVER_TOP_K

    async def ensure_ready(self) -> None:
        """Make sure the collection exists and holds the reference documents.

        Raises FatalStartupError when Qdrant is unreachable or ingestion fails.
        """
        try:
            await asyncio.to_thread(
                ensure_collection, self.collection, settings.EMBEDDING_SIZE)
            n = await asyncio.to_thread(count_points, self.collection)
            if n == 0:
                logger.info("Knowledge base %s is empty, ingesting", self.collection)
                n = await ingest_knowledge_base(collection=self.collection)
            else:
                logger.info("Knowledge base %s already loaded (%d chunks)", self.collection, n)
        except Exception as exc:
            raise FatalStartupError(f"Knowledge base unavailable: {exc}") from exc

    async def query(self, text: str) -> List[str]:
        [qvec] = await embed_texts_openai([text])
        hits = await asyncio.to_thread(search_top_k, self.collection, qvec, self.top_k)
        passages = [h["payload"].get("text", "") for h in hits if h["payload"].get("text")]
        logger.debug("Retrieved %d passages for %r", len(passages), text[:80])
        return passages
