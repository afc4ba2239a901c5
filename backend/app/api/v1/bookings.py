"""Bookings API router.

Thin boundary over :class:`~app.scheduling.engine.BookingEngine`: requests
are shape-checked by pydantic, business rules are enforced by the engine,
and engine failures are turned into responses by the ``BookingError``
handler registered in ``app.main``.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_clock, get_current_actor, get_engine, require_admin
from app.scheduling.clock import SystemClock
from app.scheduling.engine import BookingEngine
from app.scheduling.types import Actor, BookingStatus, Role
from app.schemas.booking import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    CancelledCountResponse,
    CompletedCountResponse,
    IncompleteMemberResponse,
    MemberResponse,
    WeeklyCountResponse,
)

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def _week_anchor(week: date | None, clock: SystemClock) -> datetime:
    """Midnight of ``week`` in the facility zone, or now."""
    if week is None:
        return clock.now()
    return datetime.combine(week, time.min, tzinfo=clock.tz)


# ---------------------------------------------------------------------------
# Reports and bulk operations (declared before /{booking_id})
# ---------------------------------------------------------------------------


@router.get(
    "/week-count",
    response_model=WeeklyCountResponse,
    summary="Active bookings in a week against the weekly limit",
)
async def get_weekly_count(
    user_id: uuid.UUID | None = Query(None, description="Member to inspect (admins only; defaults to self)"),
    week: date | None = Query(None, description="Any date inside the week (YYYY-MM-DD)"),
    engine: BookingEngine = Depends(get_engine),
    clock: SystemClock = Depends(get_clock),
    actor: Actor = Depends(get_current_actor),
) -> WeeklyCountResponse:
    summary = await engine.weekly_summary(actor, user_id or actor.id, _week_anchor(week, clock))
    return WeeklyCountResponse(
        user_id=summary.user_id,
        count=summary.count,
        weekly_limit=summary.limit,
        week_start=summary.week.start,
        week_end=summary.week.end,
    )


@router.get(
    "/missing-this-week",
    response_model=list[MemberResponse],
    summary="Members without any booking in the week (admin only)",
)
async def get_users_missing_this_week(
    week: date | None = Query(None, description="Any date inside the week (YYYY-MM-DD)"),
    engine: BookingEngine = Depends(get_engine),
    clock: SystemClock = Depends(get_clock),
    _admin: Actor = Depends(require_admin),
) -> list[MemberResponse]:
    members = await engine.store.list_members(Role.USER)
    report = await engine.users_below_weekly_target(members, clock.week_of(_week_anchor(week, clock)))
    return [MemberResponse.model_validate(m) for m in report.missing]


@router.get(
    "/incomplete-weekly",
    response_model=list[IncompleteMemberResponse],
    summary="Members who booked some but not all of their weekly sessions (admin only)",
)
async def get_users_with_incomplete_week(
    week: date | None = Query(None, description="Any date inside the week (YYYY-MM-DD)"),
    engine: BookingEngine = Depends(get_engine),
    clock: SystemClock = Depends(get_clock),
    _admin: Actor = Depends(require_admin),
) -> list[IncompleteMemberResponse]:
    members = await engine.store.list_members(Role.USER)
    report = await engine.users_below_weekly_target(members, clock.week_of(_week_anchor(week, clock)))
    return [
        IncompleteMemberResponse(
            id=m.id,
            name=m.name,
            email=m.email,
            role=m.role,
            weekly_booking_limit=m.weekly_booking_limit,
            booking_count=count,
        )
        for m, count in report.incomplete
    ]


@router.post(
    "/complete-past",
    response_model=CompletedCountResponse,
    summary="Mark elapsed confirmed bookings as completed (admin only)",
)
async def complete_past_bookings(
    engine: BookingEngine = Depends(get_engine),
    _admin: Actor = Depends(require_admin),
) -> CompletedCountResponse:
    completed = await engine.sweep_completed()
    return CompletedCountResponse(
        completed_count=completed,
        message=f"Marked {completed} booking{_plural(completed)} as completed",
    )


@router.delete(
    "/user/{user_id}",
    response_model=CancelledCountResponse,
    summary="Cancel every confirmed booking of a user",
)
async def cancel_all_user_bookings(
    user_id: uuid.UUID,
    engine: BookingEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
) -> CancelledCountResponse:
    cancelled = await engine.cancel_all(actor, user_id)
    return CancelledCountResponse(
        cancelled_count=cancelled,
        message=f"Cancelled {cancelled} booking{_plural(cancelled)}",
    )


# ---------------------------------------------------------------------------
# Single bookings
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new booking",
)
async def create_booking(
    body: BookingCreate,
    engine: BookingEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
) -> BookingResponse:
    """Book a slot for the caller (or, for admins, for ``user_id``)."""
    booking = await engine.create(actor, body.user_id or actor.id, body.to_request())
    return BookingResponse.model_validate(booking)


@router.get(
    "",
    response_model=BookingListResponse,
    summary="List bookings",
)
async def list_bookings(
    user_id: uuid.UUID | None = Query(None, description="Filter by member (admins only)"),
    status_filter: BookingStatus | None = Query(None, alias="status", description="Filter by booking status"),
    start_from: datetime | None = Query(None, description="Bookings starting at or after this instant"),
    start_to: datetime | None = Query(None, description="Bookings starting at or before this instant"),
    limit: int | None = Query(None, ge=1, le=500, description="Maximum number of results"),
    engine: BookingEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
) -> BookingListResponse:
    """Members see their own bookings; admins see everyone's unless filtered."""
    items = await engine.list_bookings(
        actor,
        user_id=user_id,
        status=status_filter,
        start_from=start_from,
        start_to=start_to,
        limit=limit,
    )
    return BookingListResponse(items=[BookingResponse.model_validate(b) for b in items], total=len(items))


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
async def get_booking(
    booking_id: uuid.UUID,
    engine: BookingEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
) -> BookingResponse:
    return BookingResponse.model_validate(await engine.get(actor, booking_id))


@router.patch(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Update a booking",
)
async def update_booking(
    booking_id: uuid.UUID,
    body: BookingUpdate,
    engine: BookingEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
) -> BookingResponse:
    """Partially update a booking.

    Changing the time re-runs the overlap check (and the quota check when the
    booking moves to another week). Status changes follow the lifecycle
    CONFIRMED -> CANCELLED | COMPLETED.
    """
    booking = await engine.update(actor, booking_id, body.to_patch())
    return BookingResponse.model_validate(booking)


@router.delete(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Cancel a booking",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    engine: BookingEngine = Depends(get_engine),
    actor: Actor = Depends(get_current_actor),
) -> BookingResponse:
    """Mark a booking as CANCELLED. The row is kept; repeating the call is harmless."""
    return BookingResponse.model_validate(await engine.cancel(actor, booking_id))
