"""
Fixed-window rate limiter keyed by client address.

The window id is `now` truncated to a multiple of `WINDOW_SECONDS`. A
burst straddling a window boundary can get up to `2 * MAX_REQUESTS`
through; that approximation is accepted.

The counting itself is delegated to a store exposing one atomic
primitive, `increment_below(ip, window_start, cap)`, so two concurrent
requests from the same address can never both read the same count.
"""

from typing import Protocol

from log_config import get_logger

WINDOW_SECONDS = 60
MAX_REQUESTS = 10
RETENTION_SECONDS = 3600

logger = get_logger("rate_limiter")


class CounterStore(Protocol):
    def increment_below(self, ip: str, window_start: int, cap: int) -> bool:
        """Create the counter at 1 or add 1, only while it is below `cap`."""

    def delete_older_than(self, window_start: int) -> None:
        ...


def window_start(now: int, size: int = WINDOW_SECONDS) -> int:
    return now - now % size


class RateLimiter:
    def __init__(self, store: CounterStore, *, window_seconds: int = WINDOW_SECONDS,
                 max_requests: int = MAX_REQUESTS, retention_seconds: int = RETENTION_SECONDS):
        self.store = store
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.retention_seconds = retention_seconds

    def allow(self, ip: str, now: int) -> bool:
        """Count one request for `ip`; False once the window's cap is reached.

        A denied call leaves the counter untouched.
        """

        start = window_start(now, self.window_seconds)
        allowed = self.store.increment_below(ip, start, self.max_requests)
        if not allowed:
            logger.warning("rate limit reached for %s in window %s", ip, start)
            return False

        try:
            self.store.delete_older_than(now - self.retention_seconds)
        except Exception as e:
            logger.warning("rate limit cleanup skipped: %s", e)
        return True
