"""Tests for weekly reports, the completion sweep endpoint and error mapping."""

import asyncio
from datetime import datetime

import pytest
from httpx import AsyncClient

from app.api.deps import get_engine
from app.main import app
from app.scheduling.engine import BookingEngine
from app.scheduling.store import InMemoryBookingStore

pytestmark = pytest.mark.asyncio

MON, TUE, WED = 7, 8, 9


async def _book(client: AsyncClient, headers: dict, at, day: int, hour: int) -> dict:
    body = {"start_time": at(day, hour).isoformat(), "end_time": at(day, hour + 1).isoformat()}
    response = await client.post("/api/v1/bookings", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestWeekCount:
    async def test_own_week_count(self, client: AsyncClient, auth_headers: dict, member_actor, at) -> None:
        await _book(client, auth_headers, at, MON, 9)
        response = await client.get(
            "/api/v1/bookings/week-count", params={"week": "2030-01-09"}, headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == str(member_actor.id)
        assert data["count"] == 1
        assert data["weekly_limit"] == 2
        assert datetime.fromisoformat(data["week_start"]) == at(MON, 0)
        assert datetime.fromisoformat(data["week_end"]) == at(14, 0)

    async def test_defaults_to_current_week(self, client: AsyncClient, auth_headers: dict, clock, at) -> None:
        await _book(client, auth_headers, at, MON, 9)
        clock.set(at(TUE, 8))
        response = await client.get("/api/v1/bookings/week-count", headers=auth_headers)
        assert response.json()["count"] == 1

    async def test_other_member_forbidden(self, client: AsyncClient, auth_headers: dict, other_member) -> None:
        response = await client.get(
            "/api/v1/bookings/week-count", params={"user_id": str(other_member.id)}, headers=auth_headers
        )
        assert response.status_code == 403

    async def test_admin_reads_any_member(self, client: AsyncClient, admin_headers: dict, other_member) -> None:
        response = await client.get(
            "/api/v1/bookings/week-count", params={"user_id": str(other_member.id)}, headers=admin_headers
        )
        assert response.json()["weekly_limit"] == 3


class TestWeeklyTargetReports:
    async def test_missing_and_incomplete(
        self, client: AsyncClient, auth_headers: dict, admin_headers: dict, member, other_member, at
    ) -> None:
        await _book(client, auth_headers, at, MON, 9)
        params = {"week": "2030-01-07"}

        missing = await client.get("/api/v1/bookings/missing-this-week", params=params, headers=admin_headers)
        assert missing.status_code == 200
        assert [m["id"] for m in missing.json()] == [str(other_member.id)]

        incomplete = await client.get("/api/v1/bookings/incomplete-weekly", params=params, headers=admin_headers)
        assert incomplete.status_code == 200
        assert incomplete.json() == [
            {
                "id": str(member.id),
                "name": member.name,
                "email": member.email,
                "role": "USER",
                "weekly_booking_limit": 2,
                "booking_count": 1,
            }
        ]

    async def test_reports_are_admin_only(self, client: AsyncClient, auth_headers: dict) -> None:
        for path in ("/api/v1/bookings/missing-this-week", "/api/v1/bookings/incomplete-weekly"):
            response = await client.get(path, headers=auth_headers)
            assert response.status_code == 403


class TestCompletePast:
    async def test_completes_elapsed_bookings(
        self, client: AsyncClient, auth_headers: dict, admin_headers: dict, clock, at
    ) -> None:
        booking = await _book(client, auth_headers, at, MON, 9)
        await _book(client, auth_headers, at, WED, 9)
        clock.set(at(TUE, 0))

        response = await client.post("/api/v1/bookings/complete-past", headers=admin_headers)
        assert response.json() == {"completed_count": 1, "message": "Marked 1 booking as completed"}

        fetched = await client.get(f"/api/v1/bookings/{booking['id']}", headers=auth_headers)
        assert fetched.json()["status"] == "COMPLETED"

        again = await client.post("/api/v1/bookings/complete-past", headers=admin_headers)
        assert again.json()["completed_count"] == 0


class _SlowStore(InMemoryBookingStore):
    async def find_by_id(self, booking_id):
        await asyncio.sleep(1)
        return None


async def test_store_timeout_maps_to_504(client: AsyncClient, admin_headers: dict, admin_member, clock) -> None:
    app.dependency_overrides[get_engine] = lambda: BookingEngine(_SlowStore([admin_member]), clock, timeout=0.01)
    response = await client.get(
        "/api/v1/bookings/00000000-0000-0000-0000-000000000000", headers=admin_headers
    )
    assert response.status_code == 504
    assert response.json()["code"] == "StoreTimeout"


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
