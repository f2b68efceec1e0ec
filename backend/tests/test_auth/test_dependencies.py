"""Tests for auth dependencies — token edge cases and role checks."""

import uuid
from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import auth_header, make_user
from stayfinder.auth.jwt import create_access_token, create_password_reset_token, create_token_pair
from stayfinder.models.user import User


class TestGetCurrentUser:
    """Test get_current_user dependency via the /me endpoint."""

    async def test_missing_token_rejected(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        # HTTPBearer answers 403 on older FastAPI releases, 401 on newer ones.
        assert response.status_code in (401, 403)
        assert response.json()["success"] is False

    async def test_expired_token_rejected(self, client: AsyncClient, test_user: User):
        token = create_access_token({"sub": str(test_user.id)}, expires_delta=timedelta(seconds=-1))
        headers = {"Authorization": f"Bearer {token}"}
        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    async def test_invalid_token_format(self, client: AsyncClient):
        headers = {"Authorization": "Bearer not.a.valid.jwt"}
        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    async def test_refresh_token_type_rejected(self, client: AsyncClient, test_user: User):
        tokens = create_token_pair(str(test_user.id))
        headers = {"Authorization": f"Bearer {tokens['refresh_token']}"}
        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    async def test_reset_token_type_rejected(self, client: AsyncClient, test_user: User):
        headers = {"Authorization": f"Bearer {create_password_reset_token(str(test_user.id))}"}
        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    async def test_nonexistent_user_id_rejected(self, client: AsyncClient):
        token = create_access_token({"sub": str(uuid.uuid4())})
        headers = {"Authorization": f"Bearer {token}"}
        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    async def test_inactive_user_rejected(self, client: AsyncClient, db_session: AsyncSession):
        user = await make_user(db_session, is_active=False)
        response = await client.get("/api/v1/auth/me", headers=auth_header(user))
        assert response.status_code == 401


class TestRequireRoles:
    """Role gates answer 403 with a fixed message."""

    async def test_guest_cannot_create_property(self, client: AsyncClient, auth_headers: dict):
        response = await client.post("/api/v1/properties", json={}, headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "You don't have permission to access this resource."

    async def test_host_cannot_reach_admin(self, client: AsyncClient, host_headers: dict):
        response = await client.get("/api/v1/admin/dashboard", headers=host_headers)
        assert response.status_code == 403

    async def test_admin_reaches_admin(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/v1/admin/dashboard", headers=admin_headers)
        assert response.status_code == 200
