import logging
from fastapi import APIRouter, HTTPException
from api.deps import job_queue
from infra.rag.qdrant_client import get_client

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health():
    try:
        counts = job_queue.counts()
    except Exception as exc:
        logger.error("Health check could not read the queue: %s", exc)
        raise HTTPException(status_code=503, detail="database unavailable")
    return {"status": "ok", "queue": counts}


@router.get("/vector-db/health")
def vector_db_health():
    client = get_client()
    try:
        collections = client.get_collections()
    except Exception as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return {
        "status": "ok",
        "collections": [col.name for col in collections.collections],
        "collection_count": len(collections.collections),
    }
