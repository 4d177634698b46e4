"""
Repository: SQL operations for `events`.

This file contains only DB interaction code. It maps `Event` models to
SQL parameters and rows back to `Event`. Keep business rules out of this
module.

Important notes:
- SQL strings use positional parameters for psycopg.
- `insert_event` is a single INSERT committed before returning; callers
  expect the event to be durable after the method returns.
- `id` is the primary key, so a reused id fails instead of overwriting.
"""

from typing import Optional

from db import get_conn
from models import Event

COLUMNS = "id, type, amount_oz, created_at, user_agent, source, note"


class EventRepo:
    """DB access only. No business logic here."""

    def insert_event(self, event: Event) -> None:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"INSERT INTO events ({COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s, %s)",
                    (
                        event.id,
                        event.type,
                        event.amount_oz,
                        event.created_at,
                        event.user_agent,
                        event.source,
                        event.note,
                    ),
                )
            conn.commit()

    def get_event(self, event_id: str) -> Optional[Event]:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {COLUMNS} FROM events WHERE id=%s", (event_id,))
                r = cur.fetchone()
        if r is None:
            return None
        amount = r[2]
        if amount is not None and amount == int(amount):
            amount = int(amount)
        elif amount is not None:
            amount = float(amount)
        return Event(
            id=r[0],
            type=r[1],
            amount_oz=amount,
            created_at=r[3],
            user_agent=r[4],
            source=r[5],
            note=r[6],
        )

    def ping(self) -> None:
        """Lightweight DB health check. Raises on error.

        Used by the top-level `/health` endpoint to validate DB reachability.
        """

        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
