# backend/app/main.py

import asyncio
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as SA_TimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_notification
from .core.config import settings
from .core.observability import setup_logging
from .database import engine
from .db_utils import ensure_notification_schema
from .realtime.sse import sse_broker
from .services.redis_client import redis
from .utils.notifications import alert_scheduler_failure, run_reminder_maintenance_once

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Rainbow Paws Notifications API")

# Running background tasks; the loop itself only keeps weak references
background_tasks: set[asyncio.Task] = set()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Return JSON responses for HTTP errors and log them."""
    try:
        response = await call_next(request)
    except StarletteHTTPException as exc:
        logger.error(
            "HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail
        )
        response = JSONResponse(
            status_code=exc.status_code, content={"detail": exc.detail}
        )
    except SA_TimeoutError as exc:  # DB pool timeout -> 503 to reduce retry storms
        logger.error("DB timeout at %s: %s", request.url.path, str(exc))
        response = JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Database busy, please retry"},
        )
    except Exception as exc:  # pragma: no cover - generic handler
        logger.exception("Unhandled error: %s", exc)
        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Validation error at %s: %s", request.url.path, exc.errors())
    field_errors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", []) if part not in ("body", "query", "path")]
        field_errors[".".join(loc) or "__root__"] = err.get("msg", "invalid")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"message": "Validation error", "field_errors": field_errors}},
    )


app.include_router(api_notification.router, prefix=settings.API_V1_STR)


@app.get("/healthz", tags=["health"])
async def healthz():
    return {"status": "ok", "sse_connections": sse_broker.connection_count()}


async def reminder_processing_loop() -> None:
    """Periodically fire due booking reminders and review requests."""
    while True:
        await asyncio.sleep(max(30, settings.REMINDER_INTERVAL_SECONDS))
        delay = 5
        max_retries = 5
        for attempt in range(max_retries):
            try:
                summary = await asyncio.to_thread(run_reminder_maintenance_once)
                logger.info("Reminder summary: %s", summary)
                break
            except OperationalError as exc:  # pragma: no cover - transient DB outage
                alert_scheduler_failure(exc)
                if attempt < max_retries - 1:
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, 60)
                    continue
                else:
                    # Give up for this cycle; try again next tick
                    break
            except Exception as exc:  # pragma: no cover - continue running
                alert_scheduler_failure(exc)
                break


@app.on_event("startup")
def prepare_notification_schema() -> None:
    """Create or upgrade the notification tables before serving traffic."""
    try:
        id_column = ensure_notification_schema(engine)
        logger.info("Notification schema ready (id column: %s)", id_column)
    except Exception as exc:  # pragma: no cover - best effort
        logger.warning("Notification schema check failed; retrying lazily: %s", exc)


@app.on_event("startup")
async def start_background_tasks() -> None:
    """Attach the SSE broker to the loop and launch the reminder worker."""
    sse_broker.attach_loop(asyncio.get_running_loop())
    try:
        await sse_broker.start_bus_consumer()
    except Exception as exc:  # pragma: no cover - best effort
        logger.warning("SSE bus consumer not started: %s", exc)
    if settings.REMINDERS_ENABLED:
        task = asyncio.create_task(reminder_processing_loop())
        background_tasks.add(task)
        task.add_done_callback(background_tasks.discard)


@app.on_event("shutdown")
async def shutdown_redis_client() -> None:
    """Close Redis connections when the application shuts down."""
    logger.info("Closing Redis client")
    try:
        await redis.close()
    except Exception as exc:  # pragma: no cover - best effort
        logger.warning("Redis close failed: %s", exc)


@app.get("/")
async def root():
    return {"message": "Welcome to Rainbow Paws Notifications API"}
