import math
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from sqlalchemy import delete, select
from domain.errors import RateLimitError
from infra.db.session import SessionLocal, lock_for_write
from infra.db.models import RateLimitHit, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteQuota:
    route: str
    max_requests: int
    window_seconds: int
    message: str


class SlidingWindowRateLimiter:
    """Per-client request quota over a sliding window.

    Hits live in the shared database so every API process sees the same
    window, and each check holds the write lock from count to insert, so
    concurrent requests never overshoot the quota. A rejected request is not
    recorded.
    """

    def __init__(self, session_factory=SessionLocal, clock: Callable[[], datetime] = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def check(self, quota: RouteQuota, client_id: str) -> int:
        """Count one request for ``client_id``; returns the remaining quota."""
        now = self._clock()
        window_start = now - timedelta(seconds=quota.window_seconds)
        bucket = f"{quota.route}:{client_id}"
        with self._session_factory() as s:
            # count and insert must not interleave with another API process
            lock_for_write(s, RateLimitHit)
            s.execute(delete(RateLimitHit).where(
                RateLimitHit.bucket == bucket, RateLimitHit.hit_at <= window_start))
            hits = s.scalars(
                select(RateLimitHit.hit_at)
                .where(RateLimitHit.bucket == bucket)
                .order_by(RateLimitHit.hit_at)
            ).all()
            if len(hits) >= quota.max_requests:
                s.commit()
                oldest = hits[0]
                retry_after = max(1, math.ceil(
                    (oldest + timedelta(seconds=quota.window_seconds) - now).total_seconds()))
                logger.info("Rate limit hit on %s for %s (retry after %ds)",
                            quota.route, client_id, retry_after)
                raise RateLimitError(quota.message, retry_after=retry_after)
            s.add(RateLimitHit(bucket=bucket, hit_at=now))
            s.commit()
        return quota.max_requests - len(hits) - 1
