"""
Service / facade layer.

This module implements the ingestion rules before anything is written. It
is intentionally free of SQL: it calls the stores handed to it. Every
write path goes through `EventService.record_event` so origin checking,
rate limiting and deduplication have a single chokepoint.

Order of checks (each one rejects before any later state is touched):
1. declared origin matches the serving host
2. event kind is known
3. body is a JSON object
4. `amount_oz` is a number in range (default 64)
5. rate limit for the caller's address
6. idempotency key not seen in the last few seconds
7. single insert into the event store

Rejections raise `errors.IngestError` subclasses; the route maps them to
status codes.
"""

import json
import math
import time
import uuid
from typing import Callable, Mapping, Optional
from urllib.parse import urlsplit

from pydantic import ValidationError

from errors import (
    DuplicateRequest,
    InvalidAmount,
    InvalidOrigin,
    MalformedBody,
    PersistenceFailure,
    RateLimited,
    UnknownEventKind,
)
from idempotency import IdempotencyGuard
from log_config import get_logger
from models import Event, EventIn
from rate_limiter import RateLimiter


ALLOWED_KINDS = {
    "water",
}

DEFAULT_AMOUNT_OZ = 64
MAX_AMOUNT_OZ = 10000

logger = get_logger("events")


def client_ip_from_headers(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """Identify the caller: Cloudflare's header, then X-Forwarded-For, then the peer."""
    ip = headers.get("cf-connecting-ip")
    if ip:
        return ip.strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return peer or "unknown"


def is_same_origin(origin: Optional[str], serving_url: str) -> bool:
    if not origin:
        return False
    try:
        declared = urlsplit(origin).hostname
        expected = urlsplit(serving_url).hostname
    except ValueError:
        return False
    return declared is not None and declared == expected


def parse_amount(value):
    if value is None:
        return DEFAULT_AMOUNT_OZ
    # bool is an int subclass; JSON true/false is not an amount
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidAmount()
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidAmount()
    if value < 0 or value > MAX_AMOUNT_OZ:
        raise InvalidAmount()
    return value


def parse_body(raw: bytes) -> EventIn:
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError, RecursionError) as e:
        raise MalformedBody() from e
    if not isinstance(data, dict):
        raise MalformedBody()
    try:
        return EventIn.model_validate(data)
    except ValidationError as e:
        raise MalformedBody() from e


class EventService:
    """Ingestion rules + validation + persistence.

    Example usage:
        svc = EventService(EventRepo(), RateLimiter(RateLimitRepo()),
                           IdempotencyGuard(IdempotencyRepo()))
        event = svc.record_event("water", b'{"amount_oz": 32}',
                                 origin="https://me.example", serving_url="https://me.example/api/events/water",
                                 ip="203.0.113.7")
    """

    def __init__(self, repo, rate_limiter: RateLimiter, guard: IdempotencyGuard,
                 clock: Optional[Callable[[], int]] = None):
        self.repo = repo
        self.rate_limiter = rate_limiter
        self.guard = guard
        self.clock = clock or (lambda: int(time.time()))

    def record_event(
        self,
        kind: str,
        raw_body: bytes,
        *,
        origin: Optional[str],
        serving_url: str,
        ip: str,
        user_agent: Optional[str] = None,
    ) -> Event:
        """Validate one submission and persist it as a new `Event`.

        Raises an `IngestError` subclass on any rejection. The returned
        event is durable in the store.
        """

        if not is_same_origin(origin, serving_url):
            raise InvalidOrigin()
        if kind not in ALLOWED_KINDS:
            raise UnknownEventKind()

        body = parse_body(raw_body)
        amount = parse_amount(body.amount_oz)
        now = self.clock()

        try:
            allowed = self.rate_limiter.allow(ip, now)
        except Exception as e:
            logger.exception("rate limit store failed for %s", ip)
            raise PersistenceFailure() from e
        if not allowed:
            raise RateLimited()

        key = self.guard.key_for(ip, amount, now)
        try:
            admitted = self.guard.admit(key, now)
        except Exception as e:
            logger.exception("idempotency store failed for %s", key)
            raise PersistenceFailure() from e
        if not admitted:
            raise DuplicateRequest()

        event = Event(
            id=str(uuid.uuid4()),
            type=kind,
            amount_oz=amount,
            created_at=now,
            user_agent=user_agent or None,
            source=body.source or None,
            note=body.note or None,
        )
        try:
            self.repo.insert_event(event)
        except Exception as e:
            logger.exception("failed to insert event %s", event.id)
            raise PersistenceFailure() from e

        logger.info("recorded %s event %s (amount_oz=%s)", kind, event.id, amount)
        return event

    def get_event(self, event_id: str) -> Optional[Event]:
        return self.repo.get_event(event_id)

    def health_check(self) -> None:
        """Perform a lightweight store ping via the repository."""

        self.repo.ping()
