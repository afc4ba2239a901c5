"""Value types shared by the scheduling engine, its policies and stores."""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class BookingStatus(str, enum.Enum):
    """Lifecycle of a booking: CONFIRMED -> CANCELLED | COMPLETED."""

    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    @property
    def is_active(self) -> bool:
        """Active bookings count toward quota and overlap checks."""
        return self is not BookingStatus.CANCELLED

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.CONFIRMED


ACTIVE_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.COMPLETED})


@dataclass(frozen=True)
class Actor:
    """Whoever is calling the engine, as established by the auth layer."""

    id: uuid.UUID
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def may_act_for(self, user_id: uuid.UUID) -> bool:
        return self.is_admin or self.id == user_id


@dataclass(frozen=True)
class Member:
    """A facility member as seen by the engine (the User record is external)."""

    id: uuid.UUID
    weekly_booking_limit: int
    role: Role = Role.USER
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class TimeRange:
    """Half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Week:
    """Monday 00:00 local (inclusive) to the following Monday 00:00 (exclusive)."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


@dataclass(frozen=True)
class BookingSnapshot:
    """Immutable view of a stored booking, returned by every engine operation."""

    id: uuid.UUID
    user_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    created_at: datetime
    notes: str | None = None
    updated_at: datetime | None = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)


@dataclass(frozen=True)
class BookingRequest:
    start_time: datetime
    end_time: datetime
    notes: str | None = None


_UNSET = object()


@dataclass(frozen=True)
class BookingPatch:
    """Partial update. ``notes`` uses a sentinel so it can be cleared with None."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    status: BookingStatus | None = None
    notes: object = _UNSET

    @property
    def changes_time(self) -> bool:
        return self.start_time is not None or self.end_time is not None

    @property
    def changes_notes(self) -> bool:
        return self.notes is not _UNSET


@dataclass(frozen=True)
class WeeklySummary:
    user_id: uuid.UUID
    count: int
    limit: int
    week: Week


@dataclass(frozen=True)
class WeeklyTargetReport:
    """Members who booked nothing in the week, and those who booked too little."""

    week: Week
    missing: list[Member] = field(default_factory=list)
    incomplete: list[tuple[Member, int]] = field(default_factory=list)
