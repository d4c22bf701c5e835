import os
import re
import logging
from typing import List
from app.settings import settings
from infra.pdf.parser import parse_pdf_text
from infra.rag.embeddings import embed_texts_openai
from infra.rag.qdrant_client import ensure_collection, upsert_texts_with_ids

log = logging.getLogger(__name__)

# reference documents: (file name inside KNOWLEDGE_BASE_DIR, doc_type)
KB_DOCUMENTS = [
    ("job_description.pdf", "job_description"),
    ("case_study_brief.pdf", "case_study"),
    ("scoring_rubric.pdf", "scoring_rubric"),
]


def chunk_text(text: str, size=1000, overlap=150) -> List[str]:
    out, i = [], 0
    n = len(text)
    while i < n:
        piece = text[i:i+size].strip()
        if piece:
            out.append(piece)
        i += max(1, size - overlap)
    return out


async def ingest_knowledge_base(docs_dir: str | None = None, collection: str | None = None) -> int:
    """Chunk, embed and upsert the reference PDFs. Returns the number of chunks."""
    docs_dir = docs_dir or settings.KNOWLEDGE_BASE_DIR
    collection = collection or settings.KB_COLLECTION
    paths = [(os.path.join(docs_dir, name), doc_type) for name, doc_type in KB_DOCUMENTS]
    for p, _ in paths:
        if not os.path.isfile(p):
            raise FileNotFoundError(f"Missing knowledge base PDF: {p}")

    ensure_collection(collection, vector_size=settings.EMBEDDING_SIZE)
    total = 0
    for path, doc_type in paths:
        raw = re.sub(r"\s+\n", "\n", parse_pdf_text(path))
        chunks = chunk_text(raw, size=1000, overlap=150)
        vecs = await embed_texts_openai(chunks)
        payloads = [{
            "text": t,
            "doc_type": doc_type,
            "source": os.path.basename(path),
            "chunk_index": i
        } for i, t in enumerate(chunks)]
        upsert_texts_with_ids(collection, vecs, payloads)
        log.info("Ingested %d %s chunks from %s", len(chunks), doc_type, path)
        total += len(chunks)
    return total
