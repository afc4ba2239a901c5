"""Admissibility of a candidate time range: range sanity, opening hours, overlap."""

from collections.abc import Iterable
from datetime import tzinfo

from app.scheduling.errors import ConflictError, ValidationError
from app.scheduling.types import BookingSnapshot, TimeRange


class ConflictPolicy:
    """Pure checks run before a booking's time is written.

    Only the *start* hour is bound by the opening window; the end time may
    run past closing.
    """

    def __init__(self, tz: tzinfo, opening_hour: int = 7, closing_hour: int = 20) -> None:
        self.tz = tz
        self.opening_hour = opening_hour
        self.closing_hour = closing_hour

    def check_range(self, candidate: TimeRange) -> None:
        if candidate.end <= candidate.start:
            raise ValidationError("End time must be after start time", ValidationError.INVALID_RANGE)

    def check_opening_hours(self, candidate: TimeRange) -> None:
        hour = candidate.start.astimezone(self.tz).hour
        if not self.opening_hour <= hour < self.closing_hour:
            raise ValidationError(
                f"Bookings must start between {self.opening_hour:02d}:00 and {self.closing_hour:02d}:00",
                ValidationError.OUTSIDE_OPENING_HOURS,
            )

    def check_overlap(self, candidate: TimeRange, existing: Iterable[BookingSnapshot]) -> None:
        for booking in existing:
            if booking.status.is_active and candidate.overlaps(booking.time_range):
                raise ConflictError(
                    "Time slot overlaps one of your existing bookings",
                    conflicting_id=booking.id,
                    conflicting_start=booking.start_time,
                    conflicting_end=booking.end_time,
                )

    def check(self, candidate: TimeRange, existing: Iterable[BookingSnapshot]) -> None:
        """Run every check in order; the first failure is raised."""
        self.check_range(candidate)
        self.check_opening_hours(candidate)
        self.check_overlap(candidate, existing)

    def admissible(self, candidate: TimeRange, existing: Iterable[BookingSnapshot]) -> bool:
        try:
            self.check(candidate, existing)
        except (ValidationError, ConflictError):
            return False
        return True
