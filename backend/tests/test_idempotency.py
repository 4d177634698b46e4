"""Tests for idempotency keys and the dedupe guard."""

import logging
import re
from concurrent.futures import ThreadPoolExecutor

from idempotency import IdempotencyGuard, make_idempotency_key
from repo_memory import MemoryIdempotencyRepo


def test_key_is_deterministic_and_prefixed():
    key = make_idempotency_key("A", 32, 1000)
    assert key == make_idempotency_key("A", 32, 1000)
    assert re.fullmatch(r"idempotency:[0-9a-f]{8}", key)


def test_key_is_shared_within_window():
    assert make_idempotency_key("A", 32, 1000) == make_idempotency_key("A", 32, 1004)


def test_key_changes_across_window_address_and_amount():
    base = make_idempotency_key("A", 32, 1000)
    assert make_idempotency_key("A", 32, 1005) != base
    assert make_idempotency_key("B", 32, 1000) != base
    assert make_idempotency_key("A", 33, 1000) != base


def test_first_submission_admitted_repeat_rejected():
    guard = IdempotencyGuard(MemoryIdempotencyRepo())
    key = guard.key_for("A", 32, 1000)

    assert guard.admit(key, 1000) is True
    assert guard.admit(key, 1002) is False


def test_stale_record_is_overwritten():
    store = MemoryIdempotencyRepo()
    guard = IdempotencyGuard(store)

    assert guard.admit("idempotency:abc", 1000) is True
    assert guard.admit("idempotency:abc", 1005) is True
    assert store.records["idempotency:abc"] == 1005


def test_rejected_repeat_keeps_original_timestamp():
    store = MemoryIdempotencyRepo()
    guard = IdempotencyGuard(store)
    guard.admit("idempotency:abc", 1000)
    guard.admit("idempotency:abc", 1003)

    assert store.records["idempotency:abc"] == 1000


def test_old_records_are_cleaned_up():
    store = MemoryIdempotencyRepo()
    guard = IdempotencyGuard(store)
    guard.admit("idempotency:old", 0)

    guard.admit("idempotency:new", 3700)

    assert "idempotency:old" not in store.records
    assert "idempotency:new" in store.records


def test_integral_float_amount_shares_key_with_int():
    assert make_idempotency_key("A", 32.0, 1000) == make_idempotency_key("A", 32, 1000)
    assert make_idempotency_key("A", 32.5, 1000) != make_idempotency_key("A", 32, 1000)


class FailingCleanupStore(MemoryIdempotencyRepo):
    def delete_older_than(self, created_at):
        raise ConnectionError("db down")


def test_cleanup_failure_still_admits(caplog):
    store = FailingCleanupStore()
    guard = IdempotencyGuard(store)

    with caplog.at_level(logging.WARNING):
        assert guard.admit("idempotency:abc", 1000) is True

    assert store.records["idempotency:abc"] == 1000
    assert "cleanup skipped" in caplog.text


def test_concurrent_admits_for_one_key_admit_once():
    guard = IdempotencyGuard(MemoryIdempotencyRepo())

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: guard.admit("idempotency:abc", 1000), range(50)))

    assert results.count(True) == 1
