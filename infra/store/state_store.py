import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
from sqlalchemy import delete
from infra.db.session import SessionLocal
from infra.db.models import KeyValueRecord, utcnow

logger = logging.getLogger(__name__)

FILES_NAMESPACE = "file"
JOBS_NAMESPACE = "job"


def make_key(namespace: str, record_id: str) -> str:
    return f"{namespace}:{record_id}"


class StateStore:
    """Durable key-value store with a per-key expiry.

    Every write replaces the whole JSON value and restarts the key's TTL.
    Expired keys are invisible to readers and removed lazily or by
    ``purge_expired``.
    """

    def __init__(self, session_factory=SessionLocal, clock: Callable[[], datetime] = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def set(self, namespace: str, record_id: str, value: Dict, ttl_seconds: int) -> None:
        now = self._clock()
        with self._session_factory() as s:
            s.merge(KeyValueRecord(
                key=make_key(namespace, record_id),
                namespace=namespace,
                value=value,
                expires_at=now + timedelta(seconds=ttl_seconds),
                updated_at=now,
            ))
            s.commit()

    def get(self, namespace: str, record_id: str) -> Optional[Dict]:
        key = make_key(namespace, record_id)
        with self._session_factory() as s:
            rec = s.get(KeyValueRecord, key)
            if rec is None:
                return None
            if rec.expires_at <= self._clock():
                s.delete(rec)
                s.commit()
                return None
            return dict(rec.value)

    def ttl(self, namespace: str, record_id: str) -> Optional[float]:
        """Seconds until the key expires, None when it does not exist."""
        with self._session_factory() as s:
            rec = s.get(KeyValueRecord, make_key(namespace, record_id))
            if rec is None:
                return None
            remaining = (rec.expires_at - self._clock()).total_seconds()
            return remaining if remaining > 0 else None

    def purge_expired(self) -> int:
        with self._session_factory() as s:
            res = s.execute(delete(KeyValueRecord).where(
                KeyValueRecord.expires_at <= self._clock()))
            s.commit()
            if res.rowcount:
                logger.info("Purged %d expired records", res.rowcount)
            return res.rowcount or 0
