"""Time source and week-boundary computation for the scheduling engine."""

from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Protocol

from app.scheduling.types import Week


def week_containing(instant: datetime, tz: tzinfo) -> Week:
    """Return the Monday-to-Monday week (in ``tz``) that contains ``instant``.

    Bounds are built from the local calendar date so a DST change inside the
    week does not move Monday midnight.
    """
    local_date = instant.astimezone(tz).date()
    monday = local_date - timedelta(days=local_date.weekday())
    start = datetime.combine(monday, time.min, tzinfo=tz)
    end = datetime.combine(monday + timedelta(days=7), time.min, tzinfo=tz)
    return Week(start=start, end=end)


class Clock(Protocol):
    tz: tzinfo

    def now(self) -> datetime: ...

    def week_of(self, instant: datetime) -> Week: ...


class SystemClock:
    """Wall-clock time in the facility's zone."""

    def __init__(self, tz: tzinfo) -> None:
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)

    def week_of(self, instant: datetime) -> Week:
        return week_containing(instant, self.tz)

    def current_week(self) -> Week:
        return self.week_of(self.now())


class FixedClock(SystemClock):
    """A clock that only moves when told to. Used by tests and replay scripts."""

    def __init__(self, now: datetime, tz: tzinfo | None = None) -> None:
        if now.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        super().__init__(tz or now.tzinfo)
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, delta: timedelta) -> datetime:
        self._now = self._now + delta
        return self._now
