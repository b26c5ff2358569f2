import logging
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from app.db.init_db import create_database
from app.db.base import Base
from app.db.booking_store import BookingStore
from app.db.session import engine, SessionLocal
from app.core.config import settings
from app.core.exceptions import BookingError
from app.api.v1.router import api_router
from app.schemas.common import HealthResponse
from app.utils.clock import utcnow
from app.utils.reclaimer import expire_lapsed_holds, purge_expired_bookings
from app.utils.scheduler import PeriodicTask

logger = logging.getLogger(__name__)


def build_reclaimer_tasks(store: BookingStore) -> list[PeriodicTask]:
    """Background sweeps: expire lapsed holds every minute, purge old expired bookings hourly."""

    def expire_job():
        result = expire_lapsed_holds(store, utcnow())
        if result.processed or result.failed:
            logger.info(
                "Expired %d booking(s), %d failed.", result.processed, result.failed
            )
        return result

    def purge_job():
        retention = timedelta(hours=settings.EXPIRED_RETENTION_HOURS)
        result = purge_expired_bookings(store, utcnow(), retention)
        if result.processed or result.failed:
            logger.info(
                "Purged %d expired booking(s), %d failed.", result.processed, result.failed
            )
        return result

    return [
        PeriodicTask("expire-lapsed-holds", expire_job, settings.EXPIRE_SWEEP_INTERVAL_SECONDS),
        PeriodicTask("purge-expired-bookings", purge_job, settings.PURGE_SWEEP_INTERVAL_SECONDS),
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB exists and create tables
    create_database()
    Base.metadata.create_all(bind=engine)

    tasks = build_reclaimer_tasks(BookingStore(SessionLocal)) if settings.RECLAIMER_ENABLED else []
    for task in tasks:
        task.start()
    yield

    # Shutdown: stop background sweeps
    for task in tasks:
        await task.stop()


from fastapi.middleware.cors import CORSMiddleware

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok", service="booking-service", timestamp=utcnow().isoformat())
