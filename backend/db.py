"""
Database connection helper.

Every repository in `repo_events.py` and `repo_guards.py` opens its
connection through `get_conn()`, one connection per call.

Usage:
    from db import get_conn
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")

Note: switching to a connection pool only changes `get_conn()`; the
repositories keep using it as a context manager.
"""

import psycopg
from settings import settings


def get_conn():
    """Return a new psycopg connection using `settings.db_url`.

    The short `connect_timeout` keeps an ingest request from hanging when
    the database is unreachable; the caller turns that into a 500.
    """

    return psycopg.connect(settings.db_url, connect_timeout=5)
