"""
Tests for the dashboard surfaces: packages, slot templates, ledger views
and the post-checkout verification check.
"""

import pytest
from httpx import AsyncClient

from conftest import MONDAY, headers_for


@pytest.mark.asyncio
async def test_public_package_list_hides_inactive(client: AsyncClient, db_session, packages):
    packages["blockbuster"].is_active = False
    await db_session.commit()

    response = await client.get("/api/v1/packages/")
    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == ["indie", "feature"]


@pytest.mark.asyncio
async def test_admin_creates_and_updates_package(client: AsyncClient, admin_headers, packages):
    created = await client.post("/api/v1/packages/", json={
        "id": "mini",
        "name": "Mini",
        "price": "149.00",
        "features": ["30 min session"],
    }, headers=admin_headers)
    assert created.status_code == 201

    duplicate = await client.post("/api/v1/packages/", json={
        "id": "mini", "name": "Mini", "price": "149.00",
    }, headers=admin_headers)
    assert duplicate.status_code == 400

    updated = await client.patch("/api/v1/packages/mini", json={"price": "159.00"}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["price"] == "159.00"


@pytest.mark.asyncio
async def test_viewer_cannot_edit_packages(client: AsyncClient, viewer_user, packages):
    response = await client.patch(
        "/api/v1/packages/indie", json={"price": "1.00"}, headers=headers_for(viewer_user)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_slot_template_lifecycle(client: AsyncClient, admin_headers, packages, next_monday):
    created = await client.post("/api/v1/time-slots", json={
        "day_of_week": MONDAY,
        "start_time": "09:00",
        "end_time": "12:00",
        "duration_hours": "1.5",
        "max_capacity": 2,
    }, headers=admin_headers)
    assert created.status_code == 201
    template_id = created.json()["id"]

    slots = await client.get("/api/v1/availability", params={"date": next_monday.isoformat()})
    assert [s["time"] for s in slots.json()] == ["09:00:00", "10:30:00"]

    deactivated = await client.patch(
        f"/api/v1/time-slots/{template_id}", json={"is_active": False}, headers=admin_headers
    )
    assert deactivated.status_code == 200

    slots = await client.get("/api/v1/availability", params={"date": next_monday.isoformat()})
    assert slots.json() == []


@pytest.mark.asyncio
async def test_slot_template_rejects_inverted_window(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/time-slots", json={
        "day_of_week": MONDAY,
        "start_time": "17:00",
        "end_time": "09:00",
    }, headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_slot_template_update_rejects_inverted_window(client: AsyncClient, admin_headers, monday_template):
    response = await client.patch(
        f"/api/v1/time-slots/{monday_template.id}", json={"end_time": "08:00"}, headers=admin_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_slot_template_unknown(client: AsyncClient, admin_headers):
    response = await client.patch("/api/v1/time-slots/999", json={"max_capacity": 3}, headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_ledger_views(client: AsyncClient, admin_headers, confirmed_booking):
    bookings = await client.get("/api/v1/bookings/", headers=admin_headers)
    assert bookings.status_code == 200
    assert bookings.json()["total"] == 1
    assert bookings.json()["bookings"][0]["status"] == "confirmed"

    filtered = await client.get("/api/v1/bookings/", params={"status": "cancelled"}, headers=admin_headers)
    assert filtered.json()["total"] == 0

    payments = await client.get("/api/v1/payments", headers=admin_headers)
    assert payments.json()["payments"][0]["session_id"] == "cs_paid"

    customers = await client.get("/api/v1/customers", headers=admin_headers)
    assert customers.json()["customers"][0]["email"] == "jane@example.com"

    single = await client.get(f"/api/v1/bookings/{confirmed_booking.id}", headers=admin_headers)
    assert single.json()["session_id"] == "cs_paid"


@pytest.mark.asyncio
async def test_viewer_cannot_see_customers(client: AsyncClient, viewer_user):
    response = await client.get("/api/v1/customers", headers=headers_for(viewer_user))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_verify_synced(client: AsyncClient, confirmed_booking):
    response = await client.get("/api/v1/bookings/verify", params={"session_id": "cs_paid"})
    assert response.status_code == 200
    data = response.json()
    assert data["synced"] is True
    assert data["message"] is None
    assert data["booking"]["id"] == confirmed_booking.id
    assert data["payment"]["status"] == "succeeded"
    assert data["customer"]["email"] == "jane@example.com"


@pytest.mark.asyncio
async def test_verify_by_payment_intent(client: AsyncClient, confirmed_booking):
    response = await client.get("/api/v1/bookings/verify", params={"payment_intent_id": "pi_paid"})
    assert response.json()["synced"] is True


@pytest.mark.asyncio
async def test_verify_not_yet_synced(client: AsyncClient):
    response = await client.get("/api/v1/bookings/verify", params={"session_id": "cs_unknown"})
    assert response.status_code == 200
    data = response.json()
    assert data["synced"] is False
    assert data["booking"] is None
    assert "do not retry" in data["message"].lower()


@pytest.mark.asyncio
async def test_verify_requires_a_key(client: AsyncClient):
    response = await client.get("/api/v1/bookings/verify")
    assert response.status_code == 422
