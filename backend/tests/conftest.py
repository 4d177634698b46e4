import logging

import pytest
from fastapi.testclient import TestClient

import main
from idempotency import IdempotencyGuard
from log_config import LOGGER_NAME
from rate_limiter import RateLimiter
from repo_memory import MemoryEventRepo, MemoryIdempotencyRepo, MemoryRateLimitRepo
from service_events import EventService

ORIGIN = "http://testserver"


class FakeClock:
    def __init__(self, now: int = 1000):
        self.now = now

    def __call__(self) -> int:
        return self.now


class RecordingArchive:
    def __init__(self):
        self.synced = []

    def sync(self, event):
        self.synced.append(event)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def event_repo():
    return MemoryEventRepo()


@pytest.fixture
def counter_repo():
    return MemoryRateLimitRepo()


@pytest.fixture
def idempotency_repo():
    return MemoryIdempotencyRepo()


@pytest.fixture
def service(event_repo, counter_repo, idempotency_repo, clock):
    return EventService(
        event_repo,
        RateLimiter(counter_repo),
        IdempotencyGuard(idempotency_repo),
        clock=clock,
    )


@pytest.fixture
def archive():
    return RecordingArchive()


@pytest.fixture
def client(service, archive):
    main.app.dependency_overrides[main.get_service] = lambda: service
    main.app.dependency_overrides[main.get_archive] = lambda: archive
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


def post_event(client, body=None, *, kind="water", ip="203.0.113.7", origin=ORIGIN, **kwargs):
    headers = {"CF-Connecting-IP": ip}
    if origin is not None:
        headers["Origin"] = origin
    headers.update(kwargs.pop("headers", {}))
    if "content" in kwargs:
        return client.post(f"/api/events/{kind}", content=kwargs.pop("content"), headers=headers)
    return client.post(f"/api/events/{kind}", json=body if body is not None else {}, headers=headers)


@pytest.fixture
def post(client):
    def _post(body=None, **kwargs):
        return post_event(client, body, **kwargs)

    return _post


@pytest.fixture
def caplog(caplog):
    # the lifelog logger doesn't propagate to root, where caplog listens
    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(caplog.handler)
    yield caplog
    logger.removeHandler(caplog.handler)
