"""
Booking ledger endpoints: admin list and cancel, public sync check.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import (
    current_role,
    gateway_dependency,
    notifier_dependency,
    require_permission,
)
from studio_booking.core.exceptions import PermissionDeniedError
from studio_booking.db.session import get_db
from studio_booking.schemas.booking import (
    BookingCancelRequest,
    BookingCancelResponse,
    BookingListResponse,
    BookingResponse,
    BookingVerificationResponse,
)
from studio_booking.services.booking_service import get_booking, list_bookings, verify_booking
from studio_booking.services.cancellation_service import cancel_booking
from studio_booking.services.interfaces import Notifier, PaymentGateway
from studio_booking.services.policy import has_permission

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("/", response_model=BookingListResponse)
async def list_bookings_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    booking_date: Optional[date] = Query(None, alias="date"),
    customer_email: Optional[str] = Query(None),
    _: int = Depends(require_permission("view_bookings")),
    db: AsyncSession = Depends(get_db),
):
    bookings, total = await list_bookings(db, page, page_size, status, booking_date, customer_email)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/verify", response_model=BookingVerificationResponse)
async def verify_booking_endpoint(
    session_id: Optional[str] = Query(None),
    payment_intent_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Polled by the checkout success page until the webhook has landed."""
    return await verify_booking(db, session_id=session_id, payment_reference=payment_intent_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    _: int = Depends(require_permission("view_bookings")),
    db: AsyncSession = Depends(get_db),
):
    return await get_booking(db, booking_id)


@router.post("/cancel", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    request: BookingCancelRequest,
    user_id: int = Depends(require_permission("manage_bookings")),
    role: str = Depends(current_role),
    gateway: PaymentGateway = Depends(gateway_dependency),
    notifier: Notifier = Depends(notifier_dependency),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel a booking and refund according to the policy. A processor
    failure leaves the booking untouched and is returned as 502.
    """
    if request.refund_policy != "none" and not has_permission(role, "refund_payments"):
        raise PermissionDeniedError("Missing permission: refund_payments")

    return await cancel_booking(
        db,
        gateway,
        notifier,
        booking_id=request.booking_id,
        refund_policy=request.refund_policy,
        reason=request.reason,
        cancelled_by=user_id,
    )
