import asyncio
import logging
from app.logging import configure_logging
from app.settings import settings
from infra.rag.knowledge_base import ingest_knowledge_base

log = logging.getLogger("ingest_knowledge_base")


async def main(docs_dir: str, collection: str):
    total = await ingest_knowledge_base(docs_dir=docs_dir, collection=collection)
    log.info("Ingestion completed: %d chunks in %s", total, collection)


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(
        description="Ingest job description, case study brief and scoring rubric PDFs")
    parser.add_argument("--docs", default=settings.KNOWLEDGE_BASE_DIR,
                        help="Directory holding job_description.pdf, case_study_brief.pdf, scoring_rubric.pdf")
    parser.add_argument("--collection", default=settings.KB_COLLECTION,
                        help="Qdrant collection name")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(main(args.docs, args.collection))
