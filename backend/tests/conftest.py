"""Shared test configuration and fixtures.

Engine and API tests run against the in-memory booking store and a fixed
clock, so they need no database. The SQL store has its own SQLite-backed
fixtures in ``test_scheduling/test_sql_store.py``.

Reference week: Monday 2030-01-07 to Monday 2030-01-14 (Europe/Zagreb, UTC+1).
"""

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_booking_store, get_clock
from app.auth.jwt import create_access_token
from app.main import app
from app.scheduling.clock import FixedClock
from app.scheduling.conflict import ConflictPolicy
from app.scheduling.engine import BookingEngine
from app.scheduling.quota import QuotaPolicy
from app.scheduling.store import InMemoryBookingStore
from app.scheduling.types import Actor, BookingRequest, Member, Role

FACILITY_TZ = ZoneInfo("Europe/Zagreb")

# Day-of-month for each weekday in the reference week.
MON, TUE, WED, THU, FRI, SAT, SUN = 7, 8, 9, 10, 11, 12, 13


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def at() -> Callable[..., datetime]:
    """Build a local facility time in January 2030: ``at(MON, 9, 30)``."""

    def _at(day: int, hour: int, minute: int = 0, month: int = 1) -> datetime:
        return datetime(2030, month, day, hour, minute, tzinfo=FACILITY_TZ)

    return _at


@pytest.fixture
def clock() -> FixedClock:
    """Clock parked on Tuesday 2030-01-01 08:00, well before the reference week."""
    return FixedClock(datetime(2030, 1, 1, 8, 0, tzinfo=FACILITY_TZ))


# ---------------------------------------------------------------------------
# Members and actors
# ---------------------------------------------------------------------------


@pytest.fixture
def member() -> Member:
    return Member(id=uuid.uuid4(), weekly_booking_limit=2, name="Ana Horvat", email="ana@example.com")


@pytest.fixture
def other_member() -> Member:
    return Member(id=uuid.uuid4(), weekly_booking_limit=3, name="Ivan Kovacic", email="ivan@example.com")


@pytest.fixture
def admin_member() -> Member:
    return Member(
        id=uuid.uuid4(),
        weekly_booking_limit=5,
        role=Role.ADMIN,
        name="Front Desk",
        email="admin@example.com",
    )


@pytest.fixture
def member_actor(member: Member) -> Actor:
    return Actor(id=member.id, role=Role.USER)


@pytest.fixture
def other_actor(other_member: Member) -> Actor:
    return Actor(id=other_member.id, role=Role.USER)


@pytest.fixture
def admin_actor(admin_member: Member) -> Actor:
    return Actor(id=admin_member.id, role=Role.ADMIN)


# ---------------------------------------------------------------------------
# Store and engine
# ---------------------------------------------------------------------------


@pytest.fixture
def store(member: Member, other_member: Member, admin_member: Member) -> InMemoryBookingStore:
    return InMemoryBookingStore([member, other_member, admin_member])


@pytest.fixture
def engine(store: InMemoryBookingStore, clock: FixedClock) -> BookingEngine:
    return BookingEngine(
        store,
        clock,
        ConflictPolicy(FACILITY_TZ, opening_hour=7, closing_hour=20),
        QuotaPolicy(),
        timeout=5,
    )


@pytest.fixture
def book(engine: BookingEngine, member_actor: Actor, at: Callable[..., datetime]):
    """Create a one-hour booking for the default member: ``await book(MON, 9)``."""

    async def _book(day: int, hour: int, minute: int = 0, hours: int = 1, actor: Actor | None = None, notes=None):
        actor = actor or member_actor
        start = at(day, hour, minute)
        end = at(day, hour + hours, minute)
        return await engine.create(actor, actor.id, BookingRequest(start, end, notes))

    return _book


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(store: InMemoryBookingStore, clock: FixedClock) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the in-memory store and fixed clock."""
    app.dependency_overrides[get_booking_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


def _headers_for(actor: Actor) -> dict[str, str]:
    token = create_access_token({"sub": str(actor.id), "role": actor.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(member_actor: Actor) -> dict[str, str]:
    """Authorization headers for the default member."""
    return _headers_for(member_actor)


@pytest.fixture
def other_headers(other_actor: Actor) -> dict[str, str]:
    return _headers_for(other_actor)


@pytest.fixture
def admin_headers(admin_actor: Actor) -> dict[str, str]:
    return _headers_for(admin_actor)
