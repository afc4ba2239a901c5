"""BookingStore contract and the in-memory reference implementation.

The store is the engine's only I/O dependency. Status-changing writes are
conditional on the row's current status so that each transition is a
single atomic compare-and-set.
"""

import asyncio
import uuid
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

from app.scheduling.types import (
    ACTIVE_STATUSES,
    BookingSnapshot,
    BookingStatus,
    Member,
    Role,
    TimeRange,
    Week,
)

UPDATABLE_FIELDS = frozenset({"start_time", "end_time", "notes", "status"})


class BookingStore(Protocol):
    def user_lock(self, user_id: uuid.UUID) -> AbstractAsyncContextManager[None]:
        """Serialise read-validate-write sequences for one user."""
        ...

    async def get_member(self, user_id: uuid.UUID) -> Member | None: ...

    async def list_members(self, role: Role | None = None) -> list[Member]: ...

    async def insert(self, booking: BookingSnapshot) -> BookingSnapshot: ...

    async def find_by_id(self, booking_id: uuid.UUID) -> BookingSnapshot | None: ...

    async def find_active_by_user_and_week(self, user_id: uuid.UUID, week: Week) -> list[BookingSnapshot]: ...

    async def find_active_overlapping(
        self,
        user_id: uuid.UUID,
        time_range: TimeRange,
        exclude_id: uuid.UUID | None = None,
    ) -> list[BookingSnapshot]: ...

    async def find_confirmed_by_user(self, user_id: uuid.UUID) -> list[BookingSnapshot]: ...

    async def find_all_confirmed_ended_before(self, now: datetime) -> list[BookingSnapshot]: ...

    async def query(
        self,
        user_id: uuid.UUID | None = None,
        status: BookingStatus | None = None,
        include_cancelled: bool = True,
        start_from: datetime | None = None,
        start_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[BookingSnapshot]: ...

    async def update_status(
        self,
        booking_id: uuid.UUID,
        expected: BookingStatus,
        new: BookingStatus,
        now: datetime | None = None,
    ) -> BookingSnapshot | None:
        """Set ``new`` only if the row is still ``expected``; ``None`` otherwise."""
        ...

    async def update_fields(
        self,
        booking_id: uuid.UUID,
        expected_status: BookingStatus,
        changes: dict[str, Any],
        now: datetime | None = None,
    ) -> BookingSnapshot | None: ...


class InMemoryBookingStore:
    """Dict-backed store. Every call yields to the loop, like a network round-trip."""

    def __init__(self, members: list[Member] | None = None) -> None:
        self._bookings: dict[uuid.UUID, BookingSnapshot] = {}
        self._members: dict[uuid.UUID, Member] = {m.id: m for m in members or []}
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}
        self._lock_users: Counter[uuid.UUID] = Counter()

    # -- members -------------------------------------------------------------

    def add_member(self, member: Member) -> Member:
        self._members[member.id] = member
        return member

    async def get_member(self, user_id: uuid.UUID) -> Member | None:
        await asyncio.sleep(0)
        return self._members.get(user_id)

    async def list_members(self, role: Role | None = None) -> list[Member]:
        await asyncio.sleep(0)
        return [m for m in self._members.values() if role is None or m.role is role]

    # -- locking ---------------------------------------------------------------

    @asynccontextmanager
    async def user_lock(self, user_id: uuid.UUID) -> AsyncIterator[None]:
        """Per-user lock; the entry is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    # -- reads -----------------------------------------------------------------

    async def find_by_id(self, booking_id: uuid.UUID) -> BookingSnapshot | None:
        await asyncio.sleep(0)
        return self._bookings.get(booking_id)

    async def find_active_by_user_and_week(self, user_id: uuid.UUID, week: Week) -> list[BookingSnapshot]:
        await asyncio.sleep(0)
        return [
            b
            for b in self._bookings.values()
            if b.user_id == user_id and b.status in ACTIVE_STATUSES and week.contains(b.start_time)
        ]

    async def find_active_overlapping(
        self,
        user_id: uuid.UUID,
        time_range: TimeRange,
        exclude_id: uuid.UUID | None = None,
    ) -> list[BookingSnapshot]:
        await asyncio.sleep(0)
        return [
            b
            for b in self._bookings.values()
            if b.user_id == user_id
            and b.id != exclude_id
            and b.status in ACTIVE_STATUSES
            and b.time_range.overlaps(time_range)
        ]

    async def find_confirmed_by_user(self, user_id: uuid.UUID) -> list[BookingSnapshot]:
        await asyncio.sleep(0)
        return [
            b for b in self._bookings.values() if b.user_id == user_id and b.status is BookingStatus.CONFIRMED
        ]

    async def find_all_confirmed_ended_before(self, now: datetime) -> list[BookingSnapshot]:
        await asyncio.sleep(0)
        return [b for b in self._bookings.values() if b.status is BookingStatus.CONFIRMED and b.end_time <= now]

    async def query(
        self,
        user_id: uuid.UUID | None = None,
        status: BookingStatus | None = None,
        include_cancelled: bool = True,
        start_from: datetime | None = None,
        start_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[BookingSnapshot]:
        await asyncio.sleep(0)
        items = [
            b
            for b in self._bookings.values()
            if (user_id is None or b.user_id == user_id)
            and (status is None or b.status is status)
            and (include_cancelled or b.status is not BookingStatus.CANCELLED)
            and (start_from is None or b.start_time >= start_from)
            and (start_to is None or b.start_time <= start_to)
        ]
        items.sort(key=lambda b: b.start_time, reverse=True)
        return items[:limit] if limit is not None else items

    # -- writes ----------------------------------------------------------------

    async def insert(self, booking: BookingSnapshot) -> BookingSnapshot:
        await asyncio.sleep(0)
        if booking.id in self._bookings:
            raise KeyError(f"Booking {booking.id} already exists")
        self._bookings[booking.id] = booking
        return booking

    async def update_status(
        self,
        booking_id: uuid.UUID,
        expected: BookingStatus,
        new: BookingStatus,
        now: datetime | None = None,
    ) -> BookingSnapshot | None:
        return await self.update_fields(booking_id, expected, {"status": new}, now=now)

    async def update_fields(
        self,
        booking_id: uuid.UUID,
        expected_status: BookingStatus,
        changes: dict[str, Any],
        now: datetime | None = None,
    ) -> BookingSnapshot | None:
        await asyncio.sleep(0)
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        current = self._bookings.get(booking_id)
        if current is None or current.status is not expected_status:
            return None
        updated = replace(current, **changes, updated_at=now or current.updated_at)
        self._bookings[booking_id] = updated
        return updated
