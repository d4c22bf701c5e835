import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from domain.errors import RateLimitError
from domain.services.admission import RouteQuota, SlidingWindowRateLimiter

UPLOAD = RouteQuota(route="upload", max_requests=10, window_seconds=900,
                    message="Too many uploads, please try again later")
EVALUATE = RouteQuota(route="evaluate", max_requests=20, window_seconds=900,
                      message="Too many evaluation requests, please try again later")


@pytest.fixture
def limiter(clock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(clock=clock)


def test_eleventh_request_in_window_is_rejected(limiter, clock):
    remaining = [limiter.check(UPLOAD, "10.0.0.1") for _ in range(10)]
    assert remaining[0] == 9 and remaining[-1] == 0

    with pytest.raises(RateLimitError) as exc_info:
        limiter.check(UPLOAD, "10.0.0.1")
    assert exc_info.value.retry_after == 900
    assert "Too many uploads" in str(exc_info.value)


def test_window_slides(limiter, clock):
    limiter.check(UPLOAD, "c")
    clock.advance(600)
    for _ in range(9):
        limiter.check(UPLOAD, "c")

    with pytest.raises(RateLimitError) as exc_info:
        limiter.check(UPLOAD, "c")
    assert exc_info.value.retry_after == 300

    # the first hit leaves the window, freeing exactly one slot
    clock.advance(300)
    limiter.check(UPLOAD, "c")
    with pytest.raises(RateLimitError):
        limiter.check(UPLOAD, "c")


def test_rejected_requests_do_not_extend_the_window(limiter, clock):
    for _ in range(10):
        limiter.check(UPLOAD, "c")
    for _ in range(5):
        with pytest.raises(RateLimitError):
            limiter.check(UPLOAD, "c")
        clock.advance(60)

    # original hits are now out of the window; the rejections were never counted
    clock.advance(600)
    assert limiter.check(UPLOAD, "c") == 9


def test_quotas_are_per_route_and_per_client(limiter):
    for _ in range(10):
        limiter.check(UPLOAD, "a")
    with pytest.raises(RateLimitError):
        limiter.check(UPLOAD, "a")

    assert limiter.check(UPLOAD, "b") == 9
    assert limiter.check(EVALUATE, "a") == 19


def test_concurrent_checks_never_overshoot_the_quota(clock):
    quota = RouteQuota(route="upload", max_requests=3, window_seconds=900, message="slow down")
    # one limiter per thread, like separate API processes sharing the database
    limiters = [SlidingWindowRateLimiter(clock=clock) for _ in range(8)]
    start = threading.Barrier(len(limiters))

    def attempt(limiter):
        start.wait()
        try:
            limiter.check(quota, "10.0.0.1")
            return True
        except RateLimitError:
            return False

    with ThreadPoolExecutor(max_workers=len(limiters)) as pool:
        admitted = list(pool.map(attempt, limiters))

    assert admitted.count(True) == 3
