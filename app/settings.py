import os
from pydantic import BaseModel
from functools import lru_cache
from dotenv import load_dotenv
load_dotenv()


class Settings(BaseModel):
    APP_NAME: str = os.getenv("APP_NAME", "AI CV & Project Evaluator")
    ENV: str = os.getenv("ENV", "development")
    STORAGE_DIR: str = os.getenv("STORAGE_DIR", "storage")
    KNOWLEDGE_BASE_DIR: str = os.getenv("KNOWLEDGE_BASE_DIR", "docs")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    SQLITE_PATH: str = os.getenv("SQLITE_PATH", "app.sqlite3")
    DATABASE_URL: str | None = os.getenv("DATABASE_URL") or None

    # retention of file/job records
    FILE_TTL_SECONDS: int = int(os.getenv("FILE_TTL_SECONDS", "86400"))
    JOB_TTL_SECONDS: int = int(os.getenv("JOB_TTL_SECONDS", "86400"))
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

    # admission
    UPLOAD_RATE_LIMIT: int = int(os.getenv("UPLOAD_RATE_LIMIT", "10"))
    EVALUATE_RATE_LIMIT: int = int(os.getenv("EVALUATE_RATE_LIMIT", "20"))
    RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900"))
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))

    # queue / workers
    QUEUE_MAX_ATTEMPTS: int = int(os.getenv("QUEUE_MAX_ATTEMPTS", "3"))
    QUEUE_BACKOFF_BASE_SECONDS: float = float(os.getenv("QUEUE_BACKOFF_BASE_SECONDS", "5"))
    QUEUE_LEASE_SECONDS: int = int(os.getenv("QUEUE_LEASE_SECONDS", "300"))
    QUEUE_POLL_INTERVAL_SECONDS: float = float(os.getenv("QUEUE_POLL_INTERVAL_SECONDS", "1"))
    QUEUE_FAILED_RETENTION_SECONDS: int = int(
        os.getenv("QUEUE_FAILED_RETENTION_SECONDS", str(7 * 24 * 3600)))
    RECOVERY_DELAY_SECONDS: float = float(os.getenv("RECOVERY_DELAY_SECONDS", "5"))
    WORKER_CONCURRENCY: int = int(os.getenv("WORKER_CONCURRENCY", "2"))
    REMOTE_CALL_TIMEOUT_SECONDS: float = float(os.getenv("REMOTE_CALL_TIMEOUT_SECONDS", "60"))

    # collaborators
    QDRANT_URL: str = os.getenv("QDRANT_URL", "http://localhost:6333")
    QDRANT_API_KEY: str | None = os.getenv("QDRANT_API_KEY") or None
    KB_COLLECTION: str = os.getenv("KB_COLLECTION", "knowledge_base")
    RETRIEVER_TOP_K: int = int(os.getenv("RETRIEVER_TOP_K", "3"))
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY") or None
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_EMBEDDING_MODEL: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_SIZE: int = int(os.getenv("EMBEDDING_SIZE", "1536"))
    OPENROUTER_API_KEY: str | None = os.getenv("OPENROUTER_API_KEY") or None
    OPENROUTER_MODEL: str = os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini")

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL or f"sqlite:///{self.SQLITE_PATH}"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
