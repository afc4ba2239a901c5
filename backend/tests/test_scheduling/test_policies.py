"""Unit tests for the pure conflict and quota policies."""

import uuid
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.scheduling.clock import week_containing
from app.scheduling.conflict import ConflictPolicy
from app.scheduling.errors import ConflictError, QuotaExceededError, ValidationError
from app.scheduling.quota import QuotaPolicy
from app.scheduling.types import BookingSnapshot, BookingStatus, Member, TimeRange

ZAGREB = ZoneInfo("Europe/Zagreb")


def _local(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, day, hour, minute, tzinfo=ZAGREB)


def _booking(start: datetime, end: datetime, status: BookingStatus = BookingStatus.CONFIRMED) -> BookingSnapshot:
    return BookingSnapshot(
        id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        start_time=start,
        end_time=end,
        status=status,
        created_at=_local(1, 8),
    )


@pytest.fixture
def policy() -> ConflictPolicy:
    return ConflictPolicy(ZAGREB, opening_hour=7, closing_hour=20)


class TestRange:
    def test_end_before_start_rejected(self, policy: ConflictPolicy):
        with pytest.raises(ValidationError) as exc_info:
            policy.check(TimeRange(_local(7, 10), _local(7, 9)), [])
        assert exc_info.value.reason == ValidationError.INVALID_RANGE

    def test_zero_duration_rejected(self, policy: ConflictPolicy):
        with pytest.raises(ValidationError) as exc_info:
            policy.check(TimeRange(_local(7, 10), _local(7, 10)), [])
        assert exc_info.value.reason == ValidationError.INVALID_RANGE

    def test_range_checked_before_hours(self, policy: ConflictPolicy):
        """First failure wins: a reversed range at 05:00 is a range error."""
        with pytest.raises(ValidationError) as exc_info:
            policy.check(TimeRange(_local(7, 5), _local(7, 4)), [])
        assert exc_info.value.reason == ValidationError.INVALID_RANGE


class TestOpeningHours:
    @pytest.mark.parametrize("hour,minute", [(7, 0), (12, 0), (19, 59)])
    def test_start_inside_window_accepted(self, policy: ConflictPolicy, hour: int, minute: int):
        start = _local(7, hour, minute)
        policy.check(TimeRange(start, start + timedelta(hours=1)), [])

    @pytest.mark.parametrize("hour,minute", [(6, 30), (6, 59), (20, 0), (22, 0)])
    def test_start_outside_window_rejected(self, policy: ConflictPolicy, hour: int, minute: int):
        start = _local(7, hour, minute)
        with pytest.raises(ValidationError) as exc_info:
            policy.check(TimeRange(start, start + timedelta(hours=1)), [])
        assert exc_info.value.reason == ValidationError.OUTSIDE_OPENING_HOURS

    def test_end_may_run_past_closing(self, policy: ConflictPolicy):
        policy.check(TimeRange(_local(7, 19, 30), _local(7, 21)), [])

    def test_hour_is_evaluated_in_facility_zone(self, policy: ConflictPolicy):
        """06:30 UTC is 07:30 in Zagreb in January."""
        start = datetime(2030, 1, 7, 6, 30, tzinfo=timezone.utc)
        policy.check(TimeRange(start, start + timedelta(hours=1)), [])

    def test_hours_checked_before_overlap(self, policy: ConflictPolicy):
        start = _local(7, 6, 30)
        taken = _booking(start, start + timedelta(hours=1))
        with pytest.raises(ValidationError) as exc_info:
            policy.check(TimeRange(start, start + timedelta(hours=1)), [taken])
        assert exc_info.value.reason == ValidationError.OUTSIDE_OPENING_HOURS


class TestOverlap:
    def test_overlapping_active_booking_rejected(self, policy: ConflictPolicy):
        existing = _booking(_local(7, 9), _local(7, 10))
        with pytest.raises(ConflictError) as exc_info:
            policy.check(TimeRange(_local(7, 9, 30), _local(7, 10, 30)), [existing])
        assert exc_info.value.conflicting_id == existing.id
        assert exc_info.value.details()["conflicting_booking"]["id"] == str(existing.id)

    def test_adjacent_slots_do_not_overlap(self, policy: ConflictPolicy):
        existing = _booking(_local(7, 9), _local(7, 10))
        policy.check(TimeRange(_local(7, 10), _local(7, 11)), [existing])
        policy.check(TimeRange(_local(7, 8), _local(7, 9)), [existing])

    def test_completed_booking_still_blocks(self, policy: ConflictPolicy):
        existing = _booking(_local(7, 9), _local(7, 10), BookingStatus.COMPLETED)
        assert not policy.admissible(TimeRange(_local(7, 9), _local(7, 10)), [existing])

    def test_cancelled_booking_ignored(self, policy: ConflictPolicy):
        existing = _booking(_local(7, 9), _local(7, 10), BookingStatus.CANCELLED)
        assert policy.admissible(TimeRange(_local(7, 9), _local(7, 10)), [existing])

    def test_containing_range_overlaps(self):
        outer = TimeRange(_local(7, 8), _local(7, 12))
        inner = TimeRange(_local(7, 9), _local(7, 10))
        assert outer.overlaps(inner) and inner.overlaps(outer)


class TestQuotaPolicy:
    def test_capacity_below_limit(self):
        member = Member(id=uuid.uuid4(), weekly_booking_limit=2)
        week = week_containing(_local(7, 9), ZAGREB)
        assert QuotaPolicy().has_capacity(member, week, 1)

    def test_no_capacity_at_limit(self):
        member = Member(id=uuid.uuid4(), weekly_booking_limit=2)
        week = week_containing(_local(7, 9), ZAGREB)
        assert not QuotaPolicy().has_capacity(member, week, 2)

    def test_check_reports_limit_and_count(self):
        member = Member(id=uuid.uuid4(), weekly_booking_limit=3)
        week = week_containing(_local(7, 9), ZAGREB)
        with pytest.raises(QuotaExceededError) as exc_info:
            QuotaPolicy().check(member, week, 3)
        err = exc_info.value
        assert (err.limit, err.current) == (3, 3)
        assert err.week_start == week.start
        assert "3/3" in err.message
