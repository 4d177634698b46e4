"""
Idempotency guard against accidental double submits.

The key is a CRC-32 digest of `address:amount:window`, where `window` is
`now` truncated to `WINDOW_SECONDS`. CRC-32 is chosen for speed and spread,
not collision resistance; this is not a security control.
"""

import zlib
from typing import Protocol

from log_config import get_logger

WINDOW_SECONDS = 5
RETENTION_SECONDS = 3600

logger = get_logger("idempotency")


class IdempotencyStore(Protocol):
    def claim(self, key_hash: str, now: int, window: int) -> bool:
        """Insert `key_hash` at `now`, or overwrite a record at least `window` old.

        Returns False when a fresher record already holds the key.
        """

    def delete_older_than(self, created_at: int) -> None:
        ...


def make_idempotency_key(ip: str, amount, now: int, window: int = WINDOW_SECONDS) -> str:
    bucket = now - now % window
    # 32 and 32.0 are the same submission
    if isinstance(amount, float) and amount.is_integer():
        amount = int(amount)
    data = f"{ip}:{amount}:{bucket}"
    return f"idempotency:{zlib.crc32(data.encode('utf-8')):08x}"


class IdempotencyGuard:
    def __init__(self, store: IdempotencyStore, *, window_seconds: int = WINDOW_SECONDS,
                 retention_seconds: int = RETENTION_SECONDS):
        self.store = store
        self.window_seconds = window_seconds
        self.retention_seconds = retention_seconds

    def key_for(self, ip: str, amount, now: int) -> str:
        return make_idempotency_key(ip, amount, now, self.window_seconds)

    def admit(self, key_hash: str, now: int) -> bool:
        if not self.store.claim(key_hash, now, self.window_seconds):
            return False
        try:
            self.store.delete_older_than(now - self.retention_seconds)
        except Exception as e:
            logger.warning("idempotency cleanup skipped: %s", e)
        return True
