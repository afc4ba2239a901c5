"""Booking scheduling & quota engine.

Pure policies (conflict, quota), a clock, the store contract with an
in-memory implementation, and the engine that ties them together. The
SQLAlchemy store lives in :mod:`app.scheduling.sql_store` and is imported
explicitly where a database is available.
"""

from app.scheduling.clock import Clock, FixedClock, SystemClock, week_containing
from app.scheduling.conflict import ConflictPolicy
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
from app.scheduling.quota import QuotaPolicy
from app.scheduling.store import BookingStore, InMemoryBookingStore
from app.scheduling.types import (
    Actor,
    BookingPatch,
    BookingRequest,
    BookingSnapshot,
    BookingStatus,
    Member,
    Role,
    TimeRange,
    Week,
    WeeklySummary,
    WeeklyTargetReport,
)

__all__ = [
    "Actor",
    "AuthorizationError",
    "BookingEngine",
    "BookingError",
    "BookingPatch",
    "BookingRequest",
    "BookingSnapshot",
    "BookingStatus",
    "BookingStore",
    "Clock",
    "ConflictError",
    "ConflictPolicy",
    "FixedClock",
    "InMemoryBookingStore",
    "InvalidTransition",
    "Member",
    "NotFound",
    "QuotaExceededError",
    "QuotaPolicy",
    "Role",
    "StoreTimeout",
    "SystemClock",
    "TimeRange",
    "ValidationError",
    "Week",
    "WeeklySummary",
    "WeeklyTargetReport",
    "week_containing",
]
