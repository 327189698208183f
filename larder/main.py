"""larder - household consumables reminders with free-text replies."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from larder.core.config import constants, settings
from larder.core.db_client import close_connection, init_db
from larder.core.errors import InvalidItemError, ItemNotFoundError, NotificationError
from larder.core.logging import configure_logfire, instrument_fastapi, instrument_pydantic_ai
from larder.core.redis_client import redis_client
from larder.core.scheduler import start_scheduler, stop_scheduler
from larder.core.scheduler_tracker import job_tracker
from larder.interface.items_router import router as items_router
from larder.interface.reminders_router import router as reminders_router, webhook_router


logger = logging.getLogger(__name__)


async def check_redis_connectivity() -> None:
    """Log whether the optional Redis service is reachable; never fails startup."""
    if not redis_client.is_available:
        logger.info("startup_validation", extra={"service": "redis", "status": "disabled"})
        return

    if await redis_client.ping():
        logger.info("startup_validation", extra={"service": "redis", "status": "ok"})
    else:
        logger.warning("startup_validation", extra={"service": "redis", "status": "unavailable"})


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so startup logs are captured
    configure_logfire()

    await check_redis_connectivity()
    await init_db()
    logger.info("Database initialized")

    instrument_pydantic_ai()
    start_scheduler()
    yield
    stop_scheduler()
    await redis_client.close()
    await close_connection()


app = FastAPI(
    title="larder",
    description="Household consumables reminders with free-text replies",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

app.include_router(items_router)
app.include_router(reminders_router)
app.include_router(webhook_router)


@app.exception_handler(InvalidItemError)
async def invalid_item_handler(_request: Request, exc: InvalidItemError) -> JSONResponse:
    return JSONResponse(content={"error": str(exc)}, status_code=422)


@app.exception_handler(ItemNotFoundError)
async def item_not_found_handler(_request: Request, exc: ItemNotFoundError) -> JSONResponse:
    return JSONResponse(content={"error": str(exc)}, status_code=404)


@app.exception_handler(NotificationError)
async def notification_error_handler(_request: Request, exc: NotificationError) -> JSONResponse:
    logger.error("Notification failed", extra={"channel": exc.channel, "error": exc.error})
    return JSONResponse(content={"error": str(exc), "channel": exc.channel}, status_code=502)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy", "redis": redis_client.get_health_status()}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    job_statuses = {constants.DAILY_CHECK_JOB: await job_tracker.get_job_status(constants.DAILY_CHECK_JOB)}
    dlq = job_tracker.get_dead_letter_queue()

    has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())
    overall_status = "degraded" if has_failures else "healthy"
    if dlq:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "jobs": job_statuses,
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )


def run() -> None:
    """Serve the app with uvicorn."""
    import uvicorn  # noqa: PLC0415

    uvicorn.run("larder.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
