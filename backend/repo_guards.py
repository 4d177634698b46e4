"""
Repository: SQL for the private bookkeeping tables `rate_limits` and
`idempotency_keys`.

Both check-and-write operations are a single `INSERT ... ON CONFLICT`
statement, so concurrent requests for the same key are serialized by the
row lock Postgres takes on conflict. `RETURNING` yields a row only when
the insert or the guarded update actually happened.
"""

from db import get_conn


class RateLimitRepo:
    def increment_below(self, ip: str, window_start: int, cap: int) -> bool:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO rate_limits (ip, window_start, request_count)
                    VALUES (%s, %s, 1)
                    ON CONFLICT (ip, window_start) DO UPDATE
                        SET request_count = rate_limits.request_count + 1
                        WHERE rate_limits.request_count < %s
                    RETURNING request_count
                    """,
                    (ip, window_start, cap),
                )
                row = cur.fetchone()
            conn.commit()
        return row is not None

    def delete_older_than(self, window_start: int) -> None:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM rate_limits WHERE window_start < %s", (window_start,))
            conn.commit()


class IdempotencyRepo:
    def claim(self, key_hash: str, now: int, window: int) -> bool:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO idempotency_keys (key_hash, created_at)
                    VALUES (%s, %s)
                    ON CONFLICT (key_hash) DO UPDATE
                        SET created_at = EXCLUDED.created_at
                        WHERE EXCLUDED.created_at - idempotency_keys.created_at >= %s
                    RETURNING key_hash
                    """,
                    (key_hash, now, window),
                )
                row = cur.fetchone()
            conn.commit()
        return row is not None

    def delete_older_than(self, created_at: int) -> None:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM idempotency_keys WHERE created_at < %s", (created_at,))
            conn.commit()
