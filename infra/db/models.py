from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Text, DateTime, JSON, Index
from infra.db.session import Base


def utcnow() -> datetime:
    """Naive UTC, the form every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class KeyValueRecord(Base):
    __tablename__ = "kv_records"
    key = Column(String, primary_key=True)          # '<namespace>:<uuid>'
    namespace = Column(String, nullable=False, index=True)
    value = Column(JSON, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class QueueTask(Base):
    __tablename__ = "queue_tasks"
    id = Column(String, primary_key=True)
    queue = Column(String, nullable=False)
    job_id = Column(String, nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    state = Column(String, nullable=False)          # waiting | active | failed
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False)
    available_at = Column(DateTime, nullable=False)
    lease_expires_at = Column(DateTime, nullable=True)
    worker_id = Column(String, nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    finished_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_queue_tasks_ready", "queue", "state", "available_at"),
    )


class RateLimitHit(Base):
    __tablename__ = "rate_limit_hits"
    id = Column(Integer, primary_key=True, autoincrement=True)
    bucket = Column(String, nullable=False, index=True)   # '<route>:<client>'
    hit_at = Column(DateTime, nullable=False, index=True)
