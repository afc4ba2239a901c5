"""BookingStore backed by SQLAlchemy (PostgreSQL in production).

One instance wraps one ``AsyncSession``; its transaction is the unit of
work, so ``user_lock`` holds the member's row lock until the caller commits.
"""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.user import User
from app.scheduling.store import UPDATABLE_FIELDS
from app.scheduling.types import (
    ACTIVE_STATUSES,
    BookingSnapshot,
    BookingStatus,
    Member,
    Role,
    TimeRange,
    Week,
)

_ACTIVE_VALUES = [s.value for s in ACTIVE_STATUSES]


def _to_snapshot(row: Booking) -> BookingSnapshot:
    return BookingSnapshot(
        id=row.id,
        user_id=row.user_id,
        start_time=row.start_time,
        end_time=row.end_time,
        status=BookingStatus(row.status),
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_member(row: User) -> Member:
    return Member(
        id=row.id,
        weekly_booking_limit=row.weekly_booking_limit,
        role=Role(row.role),
        name=row.name,
        email=row.email,
    )


class SqlAlchemyBookingStore:
    """Store whose state lives in the ``users`` and ``bookings`` tables."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def user_lock(self, user_id: uuid.UUID) -> AsyncIterator[None]:
        """Lock the member's row (``SELECT ... FOR UPDATE``) for this transaction.

        SQLite ignores FOR UPDATE; it serialises writers on its own.
        """
        await self.session.execute(select(User.id).where(User.id == user_id).with_for_update())
        yield

    async def get_member(self, user_id: uuid.UUID) -> Member | None:
        result = await self.session.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
        row = result.scalar_one_or_none()
        return _to_member(row) if row is not None else None

    async def list_members(self, role: Role | None = None) -> list[Member]:
        query = select(User).where(User.is_active.is_(True)).order_by(User.name)
        if role is not None:
            query = query.where(User.role == role.value)
        result = await self.session.execute(query)
        return [_to_member(row) for row in result.scalars().all()]

    async def insert(self, booking: BookingSnapshot) -> BookingSnapshot:
        row = Booking(
            id=booking.id,
            user_id=booking.user_id,
            start_time=booking.start_time,
            end_time=booking.end_time,
            status=booking.status.value,
            notes=booking.notes,
            created_at=booking.created_at,
            updated_at=booking.updated_at or booking.created_at,
        )
        self.session.add(row)
        await self.session.flush()
        return booking

    async def _fetch(self, booking_id: uuid.UUID) -> BookingSnapshot | None:
        result = await self.session.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _to_snapshot(row) if row is not None else None

    async def find_by_id(self, booking_id: uuid.UUID) -> BookingSnapshot | None:
        return await self._fetch(booking_id)

    async def _select(self, *conditions) -> list[BookingSnapshot]:
        result = await self.session.execute(
            select(Booking).where(*conditions).order_by(Booking.start_time).execution_options(populate_existing=True)
        )
        return [_to_snapshot(row) for row in result.scalars().all()]

    async def find_active_by_user_and_week(self, user_id: uuid.UUID, week: Week) -> list[BookingSnapshot]:
        return await self._select(
            Booking.user_id == user_id,
            Booking.status.in_(_ACTIVE_VALUES),
            Booking.start_time >= week.start,
            Booking.start_time < week.end,
        )

    async def find_active_overlapping(
        self,
        user_id: uuid.UUID,
        time_range: TimeRange,
        exclude_id: uuid.UUID | None = None,
    ) -> list[BookingSnapshot]:
        conditions = [
            Booking.user_id == user_id,
            Booking.status.in_(_ACTIVE_VALUES),
            Booking.start_time < time_range.end,
            Booking.end_time > time_range.start,
        ]
        if exclude_id is not None:
            conditions.append(Booking.id != exclude_id)
        return await self._select(*conditions)

    async def find_confirmed_by_user(self, user_id: uuid.UUID) -> list[BookingSnapshot]:
        return await self._select(Booking.user_id == user_id, Booking.status == BookingStatus.CONFIRMED.value)

    async def find_all_confirmed_ended_before(self, now: datetime) -> list[BookingSnapshot]:
        return await self._select(Booking.status == BookingStatus.CONFIRMED.value, Booking.end_time <= now)

    async def query(
        self,
        user_id: uuid.UUID | None = None,
        status: BookingStatus | None = None,
        include_cancelled: bool = True,
        start_from: datetime | None = None,
        start_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[BookingSnapshot]:
        query = select(Booking)

        # Dynamic filters
        if user_id is not None:
            query = query.where(Booking.user_id == user_id)
        if status is not None:
            query = query.where(Booking.status == status.value)
        if not include_cancelled:
            query = query.where(Booking.status != BookingStatus.CANCELLED.value)
        if start_from is not None:
            query = query.where(Booking.start_time >= start_from)
        if start_to is not None:
            query = query.where(Booking.start_time <= start_to)

        query = query.order_by(Booking.start_time.desc())
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return [_to_snapshot(row) for row in result.scalars().all()]

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
        """Single conditional UPDATE; returns ``None`` if the status moved on."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        values = {k: (v.value if isinstance(v, BookingStatus) else v) for k, v in changes.items()}
        if now is not None:
            values["updated_at"] = now

        result = await self.session.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return await self._fetch(booking_id)
