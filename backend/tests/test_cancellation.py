"""
Tests for admin cancellation and refunds.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update as sa_update
from sqlalchemy.exc import OperationalError

from conftest import headers_for
from studio_booking.core.exceptions import (
    AlreadyCancelledError,
    NotFoundError,
    PaymentProcessingError,
    PersistenceError,
)
from studio_booking.models import Booking, Customer
from studio_booking.services import cancellation_service
from studio_booking.services.cancellation_service import cancel_booking, compute_refund_amount
from studio_booking.services.interfaces import NotificationKind


async def reload(db, booking_id: int) -> Booking:
    result = await db.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.mark.parametrize(
    "policy,expected",
    [("full", Decimal("100.00")), ("partial", Decimal("50.00")), ("none", Decimal("0.00"))],
)
def test_refund_amount_math(policy, expected):
    assert compute_refund_amount(Decimal("100"), policy) == expected


def test_partial_refund_rounds_half_up():
    assert compute_refund_amount(Decimal("0.03"), "partial") == Decimal("0.02")


@pytest.mark.asyncio
async def test_full_refund(db_session, gateway, notifier, confirmed_booking, admin_user):
    result = await cancel_booking(
        db_session, gateway, notifier, confirmed_booking.id, "full", "schedule conflict", admin_user.id
    )

    assert result.status == "refunded"
    assert result.refund_amount == Decimal("399.00")
    assert result.refund_status == "succeeded"
    assert result.warning is None

    refund = gateway.refunds[0]
    assert refund["payment_reference"] == "pi_paid"
    assert refund["amount_minor_units"] == 39900
    assert refund["metadata"]["booking_id"] == str(confirmed_booking.id)
    assert refund["metadata"]["cancellation_reason"] == "schedule conflict"
    assert refund["idempotency_key"] == f"refund-{confirmed_booking.id}-39900"

    booking = await reload(db_session, confirmed_booking.id)
    assert booking.status == "refunded"
    assert booking.refund_amount == Decimal("399")
    assert booking.cancelled_by == admin_user.id
    assert booking.cancellation_reason == "schedule conflict"
    assert booking.cancelled_at is not None

    assert notifier.kinds() == [NotificationKind.BOOKING_CANCELLED]
    assert notifier.sent[0][2]["refund_amount"] == "399.00"


@pytest.mark.asyncio
async def test_partial_refund(db_session, gateway, notifier, confirmed_booking):
    result = await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "partial", "late")

    assert result.refund_amount == Decimal("199.50")
    assert gateway.refunds[0]["amount_minor_units"] == 19950
    booking = await reload(db_session, confirmed_booking.id)
    assert booking.status == "refunded"


@pytest.mark.asyncio
async def test_no_refund_leaves_charge_untouched(db_session, gateway, notifier, confirmed_booking):
    result = await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "none", "no show")

    assert result.status == "cancelled"
    assert result.refund_amount == Decimal("0")
    assert result.refund_status == "none"
    assert gateway.refunds == []

    booking = await reload(db_session, confirmed_booking.id)
    assert booking.status == "cancelled"


@pytest.mark.asyncio
async def test_terminal_booking_is_rejected_without_processor_call(
    db_session, gateway, notifier, confirmed_booking
):
    await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "full", "first")
    assert len(gateway.refunds) == 1

    with pytest.raises(AlreadyCancelledError):
        await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "full", "again")
    assert len(gateway.refunds) == 1


@pytest.mark.asyncio
async def test_unknown_booking(db_session, gateway, notifier):
    with pytest.raises(NotFoundError):
        await cancel_booking(db_session, gateway, notifier, 9999, "full", "why")


@pytest.mark.asyncio
async def test_processor_failure_leaves_booking_unchanged(db_session, gateway, notifier, confirmed_booking):
    gateway.fail_refunds = True

    with pytest.raises(PaymentProcessingError):
        await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "full", "oops")

    booking = await reload(db_session, confirmed_booking.id)
    assert booking.status == "confirmed"
    assert booking.refund_amount is None
    assert booking.cancelled_at is None
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_local_update_failure_returns_warning(
    db_session, gateway, notifier, confirmed_booking, monkeypatch
):
    async def failing_recompute(db, customer_id):
        raise OperationalError("UPDATE customers", {}, Exception("disk I/O error"))

    monkeypatch.setattr(cancellation_service, "recompute_customer_stats", failing_recompute)

    result = await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "full", "x")

    assert result.warning is not None
    assert result.refund_amount == Decimal("399.00")
    assert len(gateway.refunds) == 1
    booking = await reload(db_session, confirmed_booking.id)
    assert booking.status == "confirmed"
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_local_failure_without_refund_is_persistence_error(
    db_session, gateway, notifier, confirmed_booking, monkeypatch
):
    async def failing_recompute(db, customer_id):
        raise OperationalError("UPDATE customers", {}, Exception("disk I/O error"))

    monkeypatch.setattr(cancellation_service, "recompute_customer_stats", failing_recompute)

    with pytest.raises(PersistenceError):
        await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "none", "x")

    assert gateway.refunds == []
    booking = await reload(db_session, confirmed_booking.id)
    assert booking.status == "confirmed"
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_booking_cancelled_during_refund_returns_warning(
    db_session, gateway, notifier, confirmed_booking
):
    issue_refund = gateway.create_refund

    async def refund_then_payment_fails(**kwargs):
        refund = await issue_refund(**kwargs)
        await db_session.execute(
            sa_update(Booking)
            .where(Booking.id == confirmed_booking.id)
            .values(status="cancelled", cancellation_reason="Payment failed")
        )
        await db_session.commit()
        return refund

    gateway.create_refund = refund_then_payment_fails

    result = await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "full", "x")

    assert result.warning is not None
    assert result.refund_amount == Decimal("399.00")
    assert len(gateway.refunds) == 1
    booking = await reload(db_session, confirmed_booking.id)
    assert booking.status == "cancelled"
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_refund_recomputes_customer_stats(db_session, gateway, notifier, confirmed_booking):
    await cancel_booking(db_session, gateway, notifier, confirmed_booking.id, "full", "x")

    result = await db_session.execute(
        select(Customer)
        .where(Customer.id == confirmed_booking.customer_id)
        .execution_options(populate_existing=True)
    )
    assert result.scalar_one().total_spent == Decimal("0")


@pytest.mark.asyncio
async def test_cancel_endpoint(client: AsyncClient, admin_headers, confirmed_booking):
    response = await client.post(
        "/api/v1/bookings/cancel",
        json={"booking_id": confirmed_booking.id, "refund_policy": "full", "reason": "schedule conflict"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "refunded"
    assert Decimal(data["refund_amount"]) == Decimal("399")


@pytest.mark.asyncio
async def test_cancel_endpoint_processor_error(client: AsyncClient, gateway, admin_headers, confirmed_booking):
    gateway.fail_refunds = True
    response = await client.post(
        "/api/v1/bookings/cancel",
        json={"booking_id": confirmed_booking.id, "refund_policy": "full", "reason": "x"},
        headers=admin_headers,
    )
    assert response.status_code == 502
    assert "disputed" in response.json()["detail"]


@pytest.mark.asyncio
async def test_cancel_endpoint_already_refunded(client: AsyncClient, admin_headers, confirmed_booking):
    body = {"booking_id": confirmed_booking.id, "refund_policy": "full", "reason": "x"}
    await client.post("/api/v1/bookings/cancel", json=body, headers=admin_headers)
    response = await client.post("/api/v1/bookings/cancel", json=body, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_manager_cannot_refund_but_can_cancel(client: AsyncClient, manager_user, confirmed_booking):
    headers = headers_for(manager_user)
    refund = await client.post(
        "/api/v1/bookings/cancel",
        json={"booking_id": confirmed_booking.id, "refund_policy": "full", "reason": "x"},
        headers=headers,
    )
    assert refund.status_code == 403

    cancel = await client.post(
        "/api/v1/bookings/cancel",
        json={"booking_id": confirmed_booking.id, "refund_policy": "none", "reason": "x"},
        headers=headers,
    )
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_viewer_cannot_cancel(client: AsyncClient, viewer_user, confirmed_booking):
    response = await client.post(
        "/api/v1/bookings/cancel",
        json={"booking_id": confirmed_booking.id, "refund_policy": "none", "reason": "x"},
        headers=headers_for(viewer_user),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_requires_auth(client: AsyncClient, confirmed_booking):
    response = await client.post(
        "/api/v1/bookings/cancel",
        json={"booking_id": confirmed_booking.id, "refund_policy": "none", "reason": "x"},
    )
    assert response.status_code == 401
