"""
Tests for staff login, user management and role checks.
"""

import pytest
from httpx import AsyncClient

from conftest import headers_for
from studio_booking.core.config import get_settings
from studio_booking.services.auth_service import ensure_bootstrap_admin, get_user_by_email
from studio_booking.services.policy import get_role, has_permission


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, admin_user):
    response = await client.post("/api/v1/auth/login", json={
        "email": "admin@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, admin_user):
    response = await client.post("/api/v1/auth/login", json={
        "email": "admin@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_nonexistent_user(client: AsyncClient):
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "whatever123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_deactivated_user(client: AsyncClient, db_session, viewer_user):
    viewer_user.is_active = False
    await db_session.commit()
    response = await client.post("/api/v1/auth/login", json={
        "email": "viewer@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_token(client: AsyncClient):
    response = await client.get("/api/v1/bookings/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_role(db_session, admin_user, viewer_user):
    assert await get_role(db_session, admin_user.id) == "admin"
    assert await get_role(db_session, 9999) is None

    viewer_user.is_active = False
    await db_session.commit()
    assert await get_role(db_session, viewer_user.id) is None


def test_permission_table():
    assert has_permission("super_admin", "manage_users")
    assert has_permission("admin", "refund_payments")
    assert not has_permission("admin", "manage_users")
    assert has_permission("manager", "manage_bookings")
    assert not has_permission("manager", "refund_payments")
    assert has_permission("viewer", "view_payments")
    assert not has_permission("viewer", "manage_bookings")
    assert not has_permission(None, "view_packages")
    assert not has_permission("intern", "view_packages")


@pytest.mark.asyncio
async def test_super_admin_manages_users(client: AsyncClient, super_admin):
    headers = headers_for(super_admin)
    created = await client.post("/api/v1/users/", json={
        "email": "New.Staff@example.com",
        "full_name": "New Staff",
        "password": "securepassword123",
        "role": "manager",
    }, headers=headers)
    assert created.status_code == 201
    data = created.json()
    assert data["email"] == "new.staff@example.com"
    assert data["role"] == "manager"
    assert "hashed_password" not in data

    updated = await client.patch(f"/api/v1/users/{data['id']}", json={"role": "viewer"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["role"] == "viewer"

    listed = await client.get("/api/v1/users/", headers=headers)
    assert {u["email"] for u in listed.json()} == {"root@example.com", "new.staff@example.com"}


@pytest.mark.asyncio
async def test_duplicate_user_email(client: AsyncClient, super_admin, admin_user):
    response = await client.post("/api/v1/users/", json={
        "email": "admin@example.com",
        "password": "securepassword123",
    }, headers=headers_for(super_admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_weak_password(client: AsyncClient, super_admin):
    response = await client.post("/api/v1/users/", json={
        "email": "weak@example.com",
        "password": "short",
    }, headers=headers_for(super_admin))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_admin_cannot_manage_users(client: AsyncClient, admin_headers):
    response = await client.get("/api/v1/users/", headers=admin_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cannot_deactivate_self(client: AsyncClient, super_admin):
    response = await client.patch(
        f"/api/v1/users/{super_admin.id}", json={"is_active": False}, headers=headers_for(super_admin)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_bootstrap_admin(db_session, monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "BOOTSTRAP_ADMIN_EMAIL", "owner@example.com")
    monkeypatch.setattr(settings, "BOOTSTRAP_ADMIN_PASSWORD", "ownerpassword123")

    first = await ensure_bootstrap_admin(db_session)
    second = await ensure_bootstrap_admin(db_session)

    assert first.id == second.id
    assert first.role == "super_admin"
    assert await get_user_by_email(db_session, "owner@example.com") is not None
