"""Typed failures raised by the scheduling engine.

Every failure carries a stable ``code`` so callers (the HTTP layer, the
sweeper, scripts) branch on the exception class rather than on message text.
"""

import uuid
from datetime import datetime

from app.scheduling.types import BookingStatus


class BookingError(Exception):
    """Base class for all engine failures."""

    code: str = "BookingError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict:
        """Extra structured fields for the response body."""
        return {}


class ValidationError(BookingError):
    """Bad input: empty/negative range, outside opening hours, past slot."""

    code = "ValidationError"

    INVALID_RANGE = "INVALID_RANGE"
    OUTSIDE_OPENING_HOURS = "OUTSIDE_OPENING_HOURS"
    IN_PAST = "IN_PAST"
    RESCHEDULE_TOO_LATE = "RESCHEDULE_TOO_LATE"

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason

    def details(self) -> dict:
        return {"reason": self.reason}


class ConflictError(BookingError):
    """The candidate slot overlaps another active booking of the same user."""

    code = "ConflictError"

    def __init__(
        self,
        message: str,
        conflicting_id: uuid.UUID | None = None,
        conflicting_start: datetime | None = None,
        conflicting_end: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.conflicting_id = conflicting_id
        self.conflicting_start = conflicting_start
        self.conflicting_end = conflicting_end

    def details(self) -> dict:
        if self.conflicting_id is None:
            return {}
        return {
            "conflicting_booking": {
                "id": str(self.conflicting_id),
                "start_time": self.conflicting_start.isoformat() if self.conflicting_start else None,
                "end_time": self.conflicting_end.isoformat() if self.conflicting_end else None,
            }
        }


class QuotaExceededError(BookingError):
    code = "QuotaExceededError"

    def __init__(self, limit: int, current: int, week_start: datetime) -> None:
        super().__init__(f"Weekly booking limit reached ({current}/{limit} sessions this week)")
        self.limit = limit
        self.current = current
        self.week_start = week_start

    def details(self) -> dict:
        return {
            "limit": self.limit,
            "current": self.current,
            "week_start": self.week_start.isoformat(),
        }


class AuthorizationError(BookingError):
    code = "AuthorizationError"


class NotFound(BookingError):
    code = "NotFound"


class InvalidTransition(BookingError):
    code = "InvalidTransition"

    def __init__(self, current: BookingStatus, requested: BookingStatus) -> None:
        super().__init__(f"Cannot change booking status from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested

    def details(self) -> dict:
        return {"current_status": self.current.value, "requested_status": self.requested.value}


class StoreTimeout(BookingError):
    """The store did not answer within the operation deadline."""

    code = "StoreTimeout"


class StaleWrite(Exception):
    """A conditional write found the row in an unexpected state.

    Internal to the engine: it is retried once and then translated into a
    :class:`BookingError`.
    """
