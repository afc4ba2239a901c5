"""Seed the database with a demo facility: one admin, a handful of members
and next week's bookings.

Bookings are created through the engine, so the seed obeys the same opening
hours, overlap and quota rules as real traffic.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
from datetime import datetime, time, timedelta
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from app.api.deps import build_engine, get_clock
from app.database import async_session_factory
from app.models.booking import Booking
from app.models.user import User
from app.scheduling.errors import BookingError
from app.scheduling.sql_store import SqlAlchemyBookingStore
from app.scheduling.types import Actor, BookingRequest, Role

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

ADMIN = {"email": "admin@gym.com", "name": "Front Desk", "role": "ADMIN", "weekly_booking_limit": 10}

MEMBERS = [
    {"email": "ana.horvat@example.com", "name": "Ana Horvat", "weekly_booking_limit": 3},
    {"email": "ivan.kovacic@example.com", "name": "Ivan Kovačić", "weekly_booking_limit": 2},
    {"email": "marija.babic@example.com", "name": "Marija Babić", "weekly_booking_limit": 3},
    {"email": "luka.novak@example.com", "name": "Luka Novak", "weekly_booking_limit": 1},
    {"email": "petra.juric@example.com", "name": "Petra Jurić", "weekly_booking_limit": 2},
]

# (member index, weekday offset from next Monday, start hour, note)
SESSIONS = [
    (0, 0, 7, "Early strength block"),
    (0, 2, 7, None),
    (0, 4, 18, "Bring a towel"),
    (1, 1, 9, None),
    (1, 3, 9, None),
    (2, 0, 17, None),
    (3, 5, 10, "Saturday open gym"),
    # Member 4 has no sessions: shows up in the "missing this week" report.
    # This one exceeds member 3's quota and is skipped.
    (3, 6, 10, None),
]


# ---------------------------------------------------------------------------
# Main seed function
# ---------------------------------------------------------------------------


async def seed() -> None:
    """Populate the database with demo members and bookings.

    Idempotent: deletes the demo users (and their bookings) before re-seeding.
    """
    emails = [ADMIN["email"]] + [m["email"] for m in MEMBERS]
    clock = get_clock()

    async with async_session_factory() as session:
        result = await session.execute(select(User.id).where(User.email.in_(emails)))
        existing_ids = list(result.scalars().all())
        if existing_ids:
            print(f"⚠️  {len(existing_ids)} demo users already exist. Deleting and re-seeding...")
            await session.execute(delete(Booking).where(Booking.user_id.in_(existing_ids)))
            await session.execute(delete(User).where(User.id.in_(existing_ids)))
            await session.flush()

        # ------------------------------------------------------------------
        # 1. Users
        # ------------------------------------------------------------------
        admin = User(**ADMIN)
        session.add(admin)
        members: list[User] = []
        for member_data in MEMBERS:
            member = User(role="USER", **member_data)
            session.add(member)
            members.append(member)
        await session.flush()
        print(f"✅ Created admin {admin.email} and {len(members)} members")

        # ------------------------------------------------------------------
        # 2. Bookings for next week, booked by the admin on members' behalf
        # ------------------------------------------------------------------
        engine = build_engine(SqlAlchemyBookingStore(session), clock)
        actor = Actor(id=admin.id, role=Role.ADMIN)
        today = clock.now().date()
        next_monday = today + timedelta(days=7 - today.weekday())

        created = 0
        for member_index, day_offset, hour, note in SESSIONS:
            day = next_monday + timedelta(days=day_offset)
            start = datetime.combine(day, time(hour), tzinfo=clock.tz)
            request = BookingRequest(start_time=start, end_time=start + timedelta(hours=1), notes=note)
            try:
                await engine.create(actor, members[member_index].id, request)
                created += 1
            except BookingError as exc:
                print(f"   ⏭️  {members[member_index].name} {start:%a %H:%M}: {exc.code} ({exc.message})")

        await session.commit()

        print(f"✅ Created {created} bookings for the week of {next_monday.isoformat()}")
        print()
        print("=" * 60)
        print("📊 Seed Summary")
        print("=" * 60)
        print(f"   Admins:   1 ({ADMIN['email']})")
        print(f"   Members:  {len(members)}")
        print(f"   Bookings: {created}")
        print("=" * 60)


if __name__ == "__main__":
    asyncio.run(seed())
