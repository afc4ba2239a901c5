"""Weekly quota: how many active bookings a member may start in one week."""

from app.scheduling.errors import QuotaExceededError
from app.scheduling.types import Member, Week


class QuotaPolicy:
    """Evaluated at write time only; lowering a limit never invalidates history."""

    def has_capacity(self, member: Member, week: Week, active_count: int) -> bool:
        return active_count < member.weekly_booking_limit

    def check(self, member: Member, week: Week, active_count: int) -> None:
        if not self.has_capacity(member, week, active_count):
            raise QuotaExceededError(
                limit=member.weekly_booking_limit,
                current=active_count,
                week_start=week.start,
            )
