"""
Integration tests for authentication endpoints.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import AuditLog, User

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
class TestRegisterEndpoint:
    """Test POST /api/v1/auth/register endpoint."""

    async def test_register_creates_organization_and_admin(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "organization_name": "Acme Corp",
                "email": "founder@acme.com",
                "full_name": "Fiona Founder",
                "password": "founder-pass",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["organization_slug"] == "acme-corp"
        assert data["email"] == "founder@acme.com"
        assert data["token_type"] == "bearer"
        assert data["message"] == "Registration successful"

        me = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert me.status_code == 200
        assert me.json()["organization_name"] == "Acme Corp"
        assert [role["slug"] for role in me.json()["roles"]] == ["admin"]
        assert me.json()["permissions"] == ["*:*"]

    async def test_register_duplicate_email(self, client: AsyncClient, test_user_admin: User):
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "organization_name": "Another Org",
                "email": "admin@testorg.com",
                "full_name": "Someone",
                "password": "password123",
            },
        )

        assert response.status_code == 409
        assert "already exists" in response.json()["error"]

    async def test_register_short_password(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "organization_name": "Acme Corp",
                "email": "founder@acme.com",
                "full_name": "Fiona Founder",
                "password": "short",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"
        assert response.json()["details"][0]["loc"] == ["body", "password"]


@pytest.mark.asyncio
class TestLoginEndpoint:
    """Test POST /api/v1/auth/login endpoint."""

    async def test_login_success(self, client: AsyncClient, test_db: AsyncSession, test_user_admin: User):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "admin@testorg.com", "password": "admin12345"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 1800
        assert data["access_token"] != data["refresh_token"]
        assert test_user_admin.last_login_at is not None

        logs = (await test_db.execute(select(AuditLog.action))).scalars().all()
        assert logs == ["LOGIN"]

    async def test_login_wrong_password_is_audited(
        self, client: AsyncClient, test_db: AsyncSession, test_user_admin: User
    ):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "admin@testorg.com", "password": "wrongpassword"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Incorrect email or password"}

        log = (await test_db.execute(select(AuditLog))).scalar_one()
        assert log.action == "LOGIN_FAILED"
        assert log.status == "failure"

    async def test_login_nonexistent_user(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@testorg.com", "password": "somepassword"},
        )

        assert response.status_code == 401

    async def test_login_inactive_user(self, client: AsyncClient, test_user_inactive: User):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "inactive@testorg.com", "password": "inactive12345"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Account is disabled"

    async def test_login_invalid_email_format(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "not-an-email", "password": "somepassword"},
        )

        assert response.status_code == 400


@pytest.mark.asyncio
class TestRefreshEndpoint:
    """Test POST /api/v1/auth/refresh endpoint."""

    async def test_refresh_success(self, client: AsyncClient, admin_refresh_token: str):
        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": admin_refresh_token}
        )

        assert response.status_code == 200
        assert response.json()["refresh_token"] != admin_refresh_token

    async def test_refresh_with_access_token(self, client: AsyncClient, admin_access_token: str):
        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": admin_access_token}
        )

        assert response.status_code == 401

    async def test_refresh_with_garbage(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": "garbage"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid refresh token"


@pytest.mark.asyncio
class TestSessionEndpoints:
    """Test /me and /logout."""

    async def test_me_for_member(self, client: AsyncClient, member_headers: dict):
        response = await client.get("/api/v1/auth/me", headers=member_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "member@testorg.com"
        assert data["organization_name"] == "Test Organization"
        assert "crm:read" in data["permissions"]
        assert "crm:delete" not in data["permissions"]

    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_me_with_invalid_token(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": "Bearer not.a.token"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Could not validate credentials"

    async def test_logout(self, client: AsyncClient, test_db: AsyncSession, admin_headers: dict):
        response = await client.post("/api/v1/auth/logout", headers=admin_headers)

        assert response.status_code == 200
        assert "Logged out successfully" in response.json()["message"]

        actions = (await test_db.execute(select(AuditLog.action))).scalars().all()
        assert actions == ["LOGOUT"]
