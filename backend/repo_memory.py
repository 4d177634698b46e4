"""
In-memory stand-ins for the Postgres repositories.

Used when `STORAGE_BACKEND=memory` and by the tests. Each store guards its
dict with its own lock so the check-and-write primitives stay atomic per
store, matching the single-statement upserts in `repo_guards.py`.
"""

import threading
from typing import Dict, Optional, Tuple

from models import Event


class MemoryEventRepo:
    def __init__(self):
        self.events: Dict[str, Event] = {}
        self._lock = threading.Lock()

    def insert_event(self, event: Event) -> None:
        with self._lock:
            if event.id in self.events:
                raise KeyError(f"event {event.id} already exists")
            self.events[event.id] = event

    def get_event(self, event_id: str) -> Optional[Event]:
        return self.events.get(event_id)

    def ping(self) -> None:
        return None


class MemoryRateLimitRepo:
    def __init__(self):
        self.counters: Dict[Tuple[str, int], int] = {}
        self._lock = threading.Lock()

    def increment_below(self, ip: str, window_start: int, cap: int) -> bool:
        key = (ip, window_start)
        with self._lock:
            count = self.counters.get(key, 0)
            if count >= cap:
                return False
            self.counters[key] = count + 1
            return True

    def delete_older_than(self, window_start: int) -> None:
        with self._lock:
            for key in [k for k in self.counters if k[1] < window_start]:
                del self.counters[key]


class MemoryIdempotencyRepo:
    def __init__(self):
        self.records: Dict[str, int] = {}
        self._lock = threading.Lock()

    def claim(self, key_hash: str, now: int, window: int) -> bool:
        with self._lock:
            created_at = self.records.get(key_hash)
            if created_at is not None and now - created_at < window:
                return False
            self.records[key_hash] = now
            return True

    def delete_older_than(self, created_at: int) -> None:
        with self._lock:
            for key in [k for k, v in self.records.items() if v < created_at]:
                del self.records[key]
