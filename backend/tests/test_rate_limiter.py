"""Tests for the fixed-window rate limiter."""

import logging
from concurrent.futures import ThreadPoolExecutor

from rate_limiter import MAX_REQUESTS, RateLimiter, window_start
from repo_memory import MemoryRateLimitRepo


class FailingCleanupStore(MemoryRateLimitRepo):
    def delete_older_than(self, window_start):
        raise ConnectionError("db down")


def test_window_start_truncates_to_minute():
    assert window_start(1000) == 960
    assert window_start(960) == 960
    assert window_start(1019) == 960
    assert window_start(1020) == 1020


def test_allows_up_to_cap_then_denies():
    store = MemoryRateLimitRepo()
    limiter = RateLimiter(store)

    results = [limiter.allow("A", 1000) for _ in range(MAX_REQUESTS + 1)]

    assert results == [True] * MAX_REQUESTS + [False]


def test_denied_call_does_not_increment():
    store = MemoryRateLimitRepo()
    limiter = RateLimiter(store)
    for _ in range(MAX_REQUESTS + 3):
        limiter.allow("A", 1000)

    assert store.counters[("A", 960)] == MAX_REQUESTS


def test_addresses_are_counted_separately():
    limiter = RateLimiter(MemoryRateLimitRepo())
    for _ in range(MAX_REQUESTS):
        limiter.allow("A", 1000)

    assert limiter.allow("A", 1000) is False
    assert limiter.allow("B", 1000) is True


def test_next_window_starts_fresh():
    limiter = RateLimiter(MemoryRateLimitRepo())
    for _ in range(MAX_REQUESTS):
        limiter.allow("A", 1000)

    assert limiter.allow("A", 1019) is False
    assert limiter.allow("A", 1020) is True


def test_old_counters_are_cleaned_up():
    store = MemoryRateLimitRepo()
    limiter = RateLimiter(store)
    limiter.allow("A", 0)

    limiter.allow("B", 3700)

    assert ("A", 0) not in store.counters
    assert store.counters[("B", 3660)] == 1


def test_concurrent_calls_never_exceed_cap():
    limiter = RateLimiter(MemoryRateLimitRepo())

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: limiter.allow("A", 1000), range(50)))

    assert results.count(True) == MAX_REQUESTS


def test_cleanup_failure_still_allows(caplog):
    store = FailingCleanupStore()
    limiter = RateLimiter(store)

    with caplog.at_level(logging.WARNING):
        assert limiter.allow("A", 1000) is True

    assert store.counters[("A", 960)] == 1
    assert "cleanup skipped" in caplog.text
