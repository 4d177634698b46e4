from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from archive_sync import ArchiveSync
from errors import IngestError
from idempotency import IdempotencyGuard
from log_config import configure_logging, get_logger
from rate_limiter import RateLimiter
from service_events import EventService, client_ip_from_headers
from settings import settings

configure_logging(settings.env)
logger = get_logger("api")

app = FastAPI(title="Lifelog Backend")


def build_service() -> EventService:
    if settings.storage_backend == "memory":
        from repo_memory import MemoryEventRepo, MemoryIdempotencyRepo, MemoryRateLimitRepo

        return EventService(
            MemoryEventRepo(),
            RateLimiter(MemoryRateLimitRepo()),
            IdempotencyGuard(MemoryIdempotencyRepo()),
        )

    from repo_events import EventRepo
    from repo_guards import IdempotencyRepo, RateLimitRepo

    return EventService(EventRepo(), RateLimiter(RateLimitRepo()), IdempotencyGuard(IdempotencyRepo()))


# Built once at import so routes stay thin. Tests swap them through
# `app.dependency_overrides[get_service]` / `[get_archive]`.
svc = build_service()
archive = ArchiveSync.from_settings(settings)


def get_service() -> EventService:
    return svc


def get_archive() -> ArchiveSync:
    return archive


def error_response(exc: IngestError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request failed: %s", exc.message)
    else:
        logger.warning("request rejected (%s): %s", exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.get("/health")
def health(svc: EventService = Depends(get_service)):
    try:
        svc.health_check()
        return {"ok": True}
    except Exception as e:
        logger.exception("health check failed")
        return JSONResponse(status_code=500, content={"error": f"DB health check failed: {e}"})


@app.post("/api/events/{kind}", status_code=201)
async def create_event(
    kind: str,
    request: Request,
    background_tasks: BackgroundTasks,
    svc: EventService = Depends(get_service),
    archive: ArchiveSync = Depends(get_archive),
):
    raw = await request.body()
    peer = request.client.host if request.client else None
    try:
        event = await run_in_threadpool(
            svc.record_event,
            kind,
            raw,
            origin=request.headers.get("origin"),
            serving_url=str(request.url),
            ip=client_ip_from_headers(request.headers, peer),
            user_agent=request.headers.get("user-agent"),
        )
    except IngestError as e:
        return error_response(e)

    # Runs after the response is sent; the outcome never reaches the caller.
    background_tasks.add_task(archive.sync, event)
    return {
        "success": True,
        "id": event.id,
        "amount_oz": event.amount_oz,
        "created_at": event.created_at,
    }
