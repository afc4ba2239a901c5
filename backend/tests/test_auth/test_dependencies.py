"""Tests for auth dependencies — get_current_actor and require_admin edge cases."""

import uuid
from datetime import timedelta

from httpx import AsyncClient
from jose import jwt

from app.auth.jwt import create_access_token
from app.config import settings


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestGetCurrentActor:
    """Exercised through GET /api/v1/bookings, which any member may call."""

    async def test_valid_token_accepted(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/v1/bookings", headers=auth_headers)
        assert response.status_code == 200

    async def test_missing_token_rejected(self, client: AsyncClient):
        response = await client.get("/api/v1/bookings")
        assert response.status_code in (401, 403)

    async def test_expired_token_rejected(self, client: AsyncClient):
        token = create_access_token({"sub": str(uuid.uuid4())}, expires_delta=timedelta(seconds=-1))
        response = await client.get("/api/v1/bookings", headers=_bearer(token))
        assert response.status_code == 401

    async def test_invalid_token_format(self, client: AsyncClient):
        response = await client.get("/api/v1/bookings", headers=_bearer("not.a.valid.jwt"))
        assert response.status_code == 401

    async def test_non_access_token_type_rejected(self, client: AsyncClient):
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "type": "refresh"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        response = await client.get("/api/v1/bookings", headers=_bearer(token))
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token type"

    async def test_missing_sub_rejected(self, client: AsyncClient):
        token = create_access_token({"role": "USER"})
        response = await client.get("/api/v1/bookings", headers=_bearer(token))
        assert response.status_code == 401

    async def test_non_uuid_sub_rejected(self, client: AsyncClient):
        token = create_access_token({"sub": "user-123"})
        response = await client.get("/api/v1/bookings", headers=_bearer(token))
        assert response.status_code == 401

    async def test_unknown_role_rejected(self, client: AsyncClient):
        token = create_access_token({"sub": str(uuid.uuid4()), "role": "OWNER"})
        response = await client.get("/api/v1/bookings", headers=_bearer(token))
        assert response.status_code == 401

    async def test_role_defaults_to_user(self, client: AsyncClient):
        token = create_access_token({"sub": str(uuid.uuid4())})
        response = await client.post("/api/v1/bookings/complete-past", headers=_bearer(token))
        assert response.status_code == 403


class TestRequireAdmin:
    async def test_member_forbidden(self, client: AsyncClient, auth_headers: dict):
        response = await client.post("/api/v1/bookings/complete-past", headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Only admins can perform this action"

    async def test_admin_allowed(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/v1/bookings/complete-past", headers=admin_headers)
        assert response.status_code == 200
