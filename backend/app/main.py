"""GymSlots — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.deps import build_engine, get_clock
from app.api.v1.bookings import router as bookings_router
from app.config import settings
from app.scheduling.engine import BookingEngine
from app.scheduling.errors import (
    AuthorizationError,
    BookingError,
    ConflictError,
    InvalidTransition,
    NotFound,
    QuotaExceededError,
    StoreTimeout,
    ValidationError,
)
from app.scheduling.sweeper import BookingSweeper

# Configure root logger so all app.* loggers output to stderr (captured by Docker).
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[BookingError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    QuotaExceededError: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    StoreTimeout: status.HTTP_504_GATEWAY_TIMEOUT,
}


@asynccontextmanager
async def _sweep_unit_of_work() -> AsyncIterator[BookingEngine]:
    """Engine over a fresh session, committed when the sweep finishes."""
    from app.database import async_session_factory
    from app.scheduling.sql_store import SqlAlchemyBookingStore

    async with async_session_factory() as session:
        try:
            yield build_engine(SqlAlchemyBookingStore(session), get_clock())
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup — the sweeper runs once immediately, then on its interval
    sweeper = BookingSweeper(_sweep_unit_of_work, interval=settings.sweep_interval_seconds)
    if settings.sweeper_enabled:
        sweeper.start()
    app.state.sweeper = sweeper
    yield
    # Shutdown — stop the sweeper, dispose engine connections
    await sweeper.stop()
    from app.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Time-slot booking with weekly quotas for a single training facility.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Translate engine failures into responses by type, never by message."""
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code, **exc.details()},
    )


# Routers
app.include_router(bookings_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
