"""Booking engine: create, reschedule, cancel and complete bookings.

Concurrency: every read-validate-write sequence for a member runs inside
``store.user_lock(member_id)``, so two requests for the same member are
serialised while requests for different members proceed in parallel.
Status writes are additionally conditional on the row's current status;
a lost race (typically against the sweep, which takes no user locks) is
re-read and re-decided once before it is reported.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

from app.scheduling.clock import Clock
from app.scheduling.conflict import ConflictPolicy
from app.scheduling.errors import (
    AuthorizationError,
    BookingError,
    ConflictError,
    InvalidTransition,
    NotFound,
    StaleWrite,
    StoreTimeout,
    ValidationError,
)
from app.scheduling.quota import QuotaPolicy
from app.scheduling.store import BookingStore
from app.scheduling.types import (
    Actor,
    BookingPatch,
    BookingRequest,
    BookingSnapshot,
    BookingStatus,
    Member,
    TimeRange,
    Week,
    WeeklySummary,
    WeeklyTargetReport,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Allowed status changes; terminal states have no outgoing edges.
TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


class BookingEngine:
    """Stateless orchestrator; one instance may be shared by all callers."""

    def __init__(
        self,
        store: BookingStore,
        clock: Clock,
        conflict_policy: ConflictPolicy | None = None,
        quota_policy: QuotaPolicy | None = None,
        *,
        reschedule_cutoff: timedelta = timedelta(hours=2),
        timeout: float | None = None,
        hide_missing_from_non_admins: bool = True,
    ) -> None:
        self.store = store
        self.clock = clock
        self.conflict_policy = conflict_policy or ConflictPolicy(clock.tz)
        self.quota_policy = quota_policy or QuotaPolicy()
        self.reschedule_cutoff = reschedule_cutoff
        self.timeout = timeout
        self.hide_missing_from_non_admins = hide_missing_from_non_admins

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under the configured deadline."""
        try:
            async with asyncio.timeout(self.timeout):
                return await operation()
        except TimeoutError:
            logger.warning("Booking store did not respond within %ss", self.timeout)
            raise StoreTimeout(f"Booking store did not respond within {self.timeout}s") from None

    async def _retry_once(self, attempt: Callable[[], Awaitable[T]], on_second_failure: Callable[[], BookingError]) -> T:
        try:
            return await attempt()
        except StaleWrite:
            logger.warning("Concurrent modification detected, retrying with a fresh read")
        try:
            return await attempt()
        except StaleWrite:
            raise on_second_failure() from None

    async def _load_for(self, actor: Actor, booking_id: uuid.UUID) -> BookingSnapshot:
        """Fetch a booking and check the actor may touch it.

        Non-admins get the same AuthorizationError for a missing booking as for
        someone else's, so booking ids cannot be probed.
        """
        booking = await self.store.find_by_id(booking_id)
        if booking is None:
            if self.hide_missing_from_non_admins and not actor.is_admin:
                raise AuthorizationError("You can only access your own bookings")
            raise NotFound("Booking not found")
        if not actor.may_act_for(booking.user_id):
            raise AuthorizationError("You can only access your own bookings")
        return booking

    async def _require_member(self, user_id: uuid.UUID) -> Member:
        member = await self.store.get_member(user_id)
        if member is None:
            raise NotFound("User not found")
        return member

    def _reject(self, operation: str, user_id: uuid.UUID, exc: BookingError) -> BookingError:
        logger.info("%s rejected for user %s: %s (%s)", operation, user_id, exc.code, exc.message)
        return exc

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(self, actor: Actor, user_id: uuid.UUID, request: BookingRequest) -> BookingSnapshot:
        """Book a new CONFIRMED slot for ``user_id``."""
        if not actor.may_act_for(user_id):
            raise AuthorizationError("You can only create bookings for yourself")

        candidate = TimeRange(request.start_time, request.end_time)

        async def operation() -> BookingSnapshot:
            async with self.store.user_lock(user_id):
                member = await self._require_member(user_id)
                try:
                    self.conflict_policy.check_range(candidate)
                    self.conflict_policy.check_opening_hours(candidate)
                    now = self.clock.now()
                    if candidate.start <= now:
                        raise ValidationError("Cannot book sessions in the past", ValidationError.IN_PAST)

                    overlapping = await self.store.find_active_overlapping(user_id, candidate)
                    self.conflict_policy.check_overlap(candidate, overlapping)

                    week = self.clock.week_of(candidate.start)
                    in_week = await self.store.find_active_by_user_and_week(user_id, week)
                    self.quota_policy.check(member, week, len(in_week))
                except BookingError as exc:
                    raise self._reject("create", user_id, exc) from None

                booking = await self.store.insert(
                    BookingSnapshot(
                        id=uuid.uuid4(),
                        user_id=user_id,
                        start_time=candidate.start,
                        end_time=candidate.end,
                        status=BookingStatus.CONFIRMED,
                        notes=request.notes,
                        created_at=now,
                        updated_at=now,
                    )
                )
                logger.info(
                    "Created booking %s for user %s (%s - %s)",
                    booking.id,
                    user_id,
                    booking.start_time.isoformat(),
                    booking.end_time.isoformat(),
                )
                return booking

        return await self._run(operation)

    async def update(self, actor: Actor, booking_id: uuid.UUID, patch: BookingPatch) -> BookingSnapshot:
        """Reschedule, annotate or change the status of a booking."""

        async def operation() -> BookingSnapshot:
            existing = await self._load_for(actor, booking_id)
            async with self.store.user_lock(existing.user_id):
                return await self._retry_once(
                    lambda: self._apply_patch(actor, booking_id, patch),
                    lambda: ConflictError("Booking was modified concurrently, please retry"),
                )

        return await self._run(operation)

    async def _apply_patch(self, actor: Actor, booking_id: uuid.UUID, patch: BookingPatch) -> BookingSnapshot:
        current = await self.store.find_by_id(booking_id)
        if current is None:
            raise NotFound("Booking not found")

        target_status = patch.status or current.status
        if target_status is not current.status and target_status not in TRANSITIONS[current.status]:
            raise self._reject("update", current.user_id, InvalidTransition(current.status, target_status))
        if patch.changes_time and current.status.is_terminal:
            raise self._reject("update", current.user_id, InvalidTransition(current.status, BookingStatus.CONFIRMED))
        # A session only counts as attended once it has ended.
        if target_status is BookingStatus.COMPLETED and current.end_time > self.clock.now():
            raise self._reject("update", current.user_id, InvalidTransition(current.status, target_status))

        changes: dict[str, Any] = {}
        if patch.changes_notes:
            changes["notes"] = patch.notes
        if target_status is not current.status:
            changes["status"] = target_status

        if patch.changes_time:
            candidate = TimeRange(patch.start_time or current.start_time, patch.end_time or current.end_time)
            try:
                self._check_reschedule_window(actor, current)
                self.conflict_policy.check_range(candidate)
                start_moved = candidate.start != current.start_time
                if start_moved:
                    self.conflict_policy.check_opening_hours(candidate)
                    if candidate.start <= self.clock.now():
                        raise ValidationError("Cannot move a booking into the past", ValidationError.IN_PAST)
                if target_status.is_active:
                    overlapping = await self.store.find_active_overlapping(
                        current.user_id, candidate, exclude_id=current.id
                    )
                    self.conflict_policy.check_overlap(candidate, overlapping)
                    new_week = self.clock.week_of(candidate.start)
                    if start_moved and new_week != self.clock.week_of(current.start_time):
                        member = await self._require_member(current.user_id)
                        in_week = await self.store.find_active_by_user_and_week(current.user_id, new_week)
                        self.quota_policy.check(member, new_week, len(in_week))
            except BookingError as exc:
                raise self._reject("update", current.user_id, exc) from None
            changes["start_time"] = candidate.start
            changes["end_time"] = candidate.end

        if not changes:
            return current

        updated = await self.store.update_fields(current.id, current.status, changes, now=self.clock.now())
        if updated is None:
            raise StaleWrite(current.id)
        logger.info("Updated booking %s (%s)", updated.id, ", ".join(sorted(changes)))
        return updated

    def _check_reschedule_window(self, actor: Actor, booking: BookingSnapshot) -> None:
        if actor.is_admin:
            return
        if booking.start_time - self.clock.now() < self.reschedule_cutoff:
            minutes = int(self.reschedule_cutoff.total_seconds() // 60)
            raise ValidationError(
                f"Cannot reschedule a booking less than {minutes} minutes before it starts",
                ValidationError.RESCHEDULE_TOO_LATE,
            )

    async def cancel(self, actor: Actor, booking_id: uuid.UUID) -> BookingSnapshot:
        """Soft-delete a booking. Cancelling a cancelled booking is a no-op."""

        async def operation() -> BookingSnapshot:
            existing = await self._load_for(actor, booking_id)
            async with self.store.user_lock(existing.user_id):
                return await self._retry_once(
                    lambda: self._cancel_one(booking_id),
                    lambda: ConflictError("Booking was modified concurrently, please retry"),
                )

        return await self._run(operation)

    async def _cancel_one(self, booking_id: uuid.UUID) -> BookingSnapshot:
        current = await self.store.find_by_id(booking_id)
        if current is None:
            raise NotFound("Booking not found")
        if current.status is BookingStatus.CANCELLED:
            return current
        if current.status is BookingStatus.COMPLETED:
            raise InvalidTransition(current.status, BookingStatus.CANCELLED)
        updated = await self.store.update_status(
            current.id, BookingStatus.CONFIRMED, BookingStatus.CANCELLED, now=self.clock.now()
        )
        if updated is None:
            raise StaleWrite(current.id)
        logger.info("Cancelled booking %s for user %s", updated.id, updated.user_id)
        return updated

    async def cancel_all(self, actor: Actor, user_id: uuid.UUID) -> int:
        """Cancel every CONFIRMED booking of ``user_id``; returns how many changed."""
        if not actor.may_act_for(user_id):
            raise AuthorizationError("You can only cancel your own bookings")

        async def operation() -> int:
            cancelled = 0
            async with self.store.user_lock(user_id):
                now = self.clock.now()
                for booking in await self.store.find_confirmed_by_user(user_id):
                    updated = await self.store.update_status(
                        booking.id, BookingStatus.CONFIRMED, BookingStatus.CANCELLED, now=now
                    )
                    if updated is not None:
                        cancelled += 1
            logger.info("Cancelled %d booking(s) for user %s", cancelled, user_id)
            return cancelled

        return await self._run(operation)

    async def sweep_completed(self, now: datetime | None = None) -> int:
        """Mark every CONFIRMED booking whose end is at or before ``now`` as COMPLETED.

        Each row moves independently, so a partial run is resumed by running
        again; rows already moved (or cancelled meanwhile) are skipped.
        """
        cutoff = now or self.clock.now()

        async def operation() -> int:
            completed = 0
            for booking in await self.store.find_all_confirmed_ended_before(cutoff):
                updated = await self.store.update_status(
                    booking.id, BookingStatus.CONFIRMED, BookingStatus.COMPLETED, now=cutoff
                )
                if updated is not None:
                    completed += 1
            if completed:
                logger.info("Marked %d booking(s) as completed", completed)
            return completed

        return await self._run(operation)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, actor: Actor, booking_id: uuid.UUID) -> BookingSnapshot:
        return await self._run(lambda: self._load_for(actor, booking_id))

    async def list_bookings(
        self,
        actor: Actor,
        user_id: uuid.UUID | None = None,
        status: BookingStatus | None = None,
        start_from: datetime | None = None,
        start_to: datetime | None = None,
        limit: int | None = None,
    ) -> list[BookingSnapshot]:
        """List bookings, newest start first.

        Non-admins only ever see their own. Cancelled bookings are hidden
        unless asked for explicitly through ``status``.
        """
        if not actor.is_admin:
            if user_id is not None and user_id != actor.id:
                raise AuthorizationError("You can only list your own bookings")
            user_id = actor.id
        return await self._run(
            lambda: self.store.query(
                user_id=user_id,
                status=status,
                include_cancelled=status is not None,
                start_from=start_from,
                start_to=start_to,
                limit=limit,
            )
        )

    async def weekly_count(self, user_id: uuid.UUID, week: Week) -> int:
        bookings = await self._run(lambda: self.store.find_active_by_user_and_week(user_id, week))
        return len(bookings)

    async def weekly_summary(self, actor: Actor, user_id: uuid.UUID, at: datetime | None = None) -> WeeklySummary:
        if not actor.may_act_for(user_id):
            raise AuthorizationError("You can only view your own weekly count")
        member = await self._run(lambda: self._require_member(user_id))
        week = self.clock.week_of(at or self.clock.now())
        count = await self.weekly_count(user_id, week)
        return WeeklySummary(user_id=user_id, count=count, limit=member.weekly_booking_limit, week=week)

    async def users_below_weekly_target(self, members: list[Member], week: Week) -> WeeklyTargetReport:
        """Split ``members`` into those with no bookings and those below their limit."""
        report = WeeklyTargetReport(week=week)
        for member in members:
            count = await self.weekly_count(member.id, week)
            if count == 0:
                report.missing.append(member)
            elif count < member.weekly_booking_limit:
                report.incomplete.append((member, count))
        return report
