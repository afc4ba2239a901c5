"""Shared API dependencies — single import point for all routers.

Re-exports database session and authentication dependencies and wires the
booking engine so that router modules can import everything they need from
one place::

    from app.api.deps import get_current_actor, get_engine
"""

from datetime import timedelta

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_actor, require_admin
from app.config import settings
from app.database import get_db
from app.scheduling.clock import SystemClock
from app.scheduling.conflict import ConflictPolicy
from app.scheduling.engine import BookingEngine
from app.scheduling.quota import QuotaPolicy
from app.scheduling.sql_store import SqlAlchemyBookingStore
from app.scheduling.store import BookingStore

_system_clock = SystemClock(settings.facility_tz)


def get_clock() -> SystemClock:
    return _system_clock


def get_booking_store(db: AsyncSession = Depends(get_db)) -> BookingStore:
    """Booking store bound to the request's database session."""
    return SqlAlchemyBookingStore(db)


def build_engine(store: BookingStore, clock: SystemClock) -> BookingEngine:
    """Assemble an engine from application settings."""
    return BookingEngine(
        store,
        clock,
        ConflictPolicy(clock.tz, settings.opening_hour, settings.closing_hour),
        QuotaPolicy(),
        reschedule_cutoff=timedelta(minutes=settings.reschedule_cutoff_minutes),
        timeout=settings.store_timeout_seconds,
    )


def get_engine(
    store: BookingStore = Depends(get_booking_store),
    clock: SystemClock = Depends(get_clock),
) -> BookingEngine:
    return build_engine(store, clock)


__all__ = [
    "build_engine",
    "get_booking_store",
    "get_clock",
    "get_current_actor",
    "get_db",
    "get_engine",
    "require_admin",
]
