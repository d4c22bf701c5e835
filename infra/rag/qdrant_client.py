import hashlib
import uuid
from qdrant_client import QdrantClient
from qdrant_client.models import Distance, VectorParams, PointStruct
from app.settings import settings


def get_client():
    return QdrantClient(url=settings.QDRANT_URL, api_key=settings.QDRANT_API_KEY or None)


def ensure_collection(name: str, vector_size: int = 1536):
    c = get_client()
    names = {x.name for x in c.get_collections().collections}
    if name not in names:
        c.create_collection(collection_name=name, vectors_config=VectorParams(
            size=vector_size, distance=Distance.COSINE))


def count_points(collection: str) -> int:
    return get_client().count(collection_name=collection, exact=True).count


def _stable_id(doc_type: str, text: str, source: str = "", chunk_index: int = -1) -> str:
    raw = f"{doc_type}|{source}|{chunk_index}|{text}"
    return str(uuid.UUID(hex=hashlib.md5(raw.encode("utf-8")).hexdigest()))


def upsert_texts_with_ids(collection: str, vectors: list[list[float]], payloads: list[dict]):
    points = [
        PointStruct(
            id=_stable_id(
                p["doc_type"], p["text"], p.get("source", ""), p.get("chunk_index", -1)
            ),
            vector=v,
            payload=p
        )
        for v, p in zip(vectors, payloads)
    ]
    get_client().upsert(collection_name=collection, points=points)


def search_top_k(collection: str, query_vector: list[float], k: int):
    res = get_client().query_points(
        collection_name=collection,
        query=query_vector,
        limit=k,
        with_payload=True,
    )
    return [{"payload": h.payload or {}, "score": float(h.score)} for h in res.points]
