"""
Admin-initiated cancellation and refund.

ORDERING
========

  1. Load the booking; refuse terminal bookings before touching the processor
  2. Ask the processor for the refund
  3. Only then write the booking's new status and refund fields

If step 2 fails, nothing local has changed: the admin sees the processor's
error and the customer is never told "refunded" when no money moved.

If step 3 fails after step 2 succeeded, or finds the booking was moved to
a terminal state while the refund was in flight, the refund is NOT retried (that
would refund twice). The call returns success with a warning and the
divergence is logged for manual follow-up. The refund carries an
idempotency key derived from booking id and amount, so an admin re-running
the cancel gets the processor's original refund back instead of a new one.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import (
    AlreadyCancelledError,
    NotFoundError,
    PaymentProcessingError,
    PersistenceError,
    ValidationError,
)
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_refund
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.schemas.booking import BookingCancelResponse
from studio_booking.services.cache_service import invalidate_availability
from studio_booking.services.checkout_service import to_minor_units
from studio_booking.services.customer_service import recompute_customer_stats
from studio_booking.services.interfaces import NotificationKind, Notifier, PaymentGateway
from studio_booking.services.notifications import booking_fields, notify

logger = get_logger(__name__)

PARTIAL_REFUND_RATE = Decimal("0.5")
REFUND_REASON = "requested_by_customer"

LOCAL_UPDATE_WARNING = (
    "Refund was processed by the payment provider but the booking record "
    "could not be updated. Do not refund again; update the booking manually."
)


def compute_refund_amount(price: Decimal, refund_policy: str) -> Decimal:
    """full = 100%, partial = 50%, none = 0. Rounded half-up to cents."""
    if refund_policy == "full":
        amount = Decimal(price)
    elif refund_policy == "partial":
        amount = Decimal(price) * PARTIAL_REFUND_RATE
    elif refund_policy == "none":
        return Decimal("0.00")
    else:
        raise ValidationError(f"Unknown refund policy: {refund_policy}")
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _refund_not_recorded(
    booking_id: int,
    new_status: str,
    refund_amount: Decimal,
    refund_status: str,
    error: str,
) -> BookingCancelResponse:
    """Money moved at the processor but the booking row does not show it."""
    record_refund("local_update_failed")
    logger.error(
        "refund_local_update_failed",
        booking_id=booking_id,
        amount=str(refund_amount),
        error=error,
    )
    return BookingCancelResponse(
        booking_id=booking_id,
        status=new_status,
        refund_amount=refund_amount,
        refund_status=refund_status,
        warning=LOCAL_UPDATE_WARNING,
        message="Refund processed; booking record needs manual update",
    )

async def cancel_booking(
    db: AsyncSession,
    gateway: PaymentGateway,
    notifier: Notifier,
    booking_id: int,
    refund_policy: str,
    reason: str,
    cancelled_by: Optional[int] = None,
) -> BookingCancelResponse:
    booking = await db.get(Booking, booking_id, populate_existing=True)
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")

    if booking.status in BookingStatus.TERMINAL:
        raise AlreadyCancelledError(f"Booking is already {booking.status}")

    refund_amount = compute_refund_amount(booking.price, refund_policy)
    refund_status = "none"
    prior_status = booking.status

    if refund_amount > 0 and booking.payment_intent_id:
        amount_minor_units = to_minor_units(refund_amount)
        try:
            refund = await gateway.create_refund(
                payment_reference=booking.payment_intent_id,
                amount_minor_units=amount_minor_units,
                reason=REFUND_REASON,
                metadata={
                    "booking_id": str(booking.id),
                    "cancelled_by": str(cancelled_by) if cancelled_by is not None else "",
                    "cancellation_reason": reason,
                },
                idempotency_key=f"refund-{booking.id}-{amount_minor_units}",
            )
        except PaymentProcessingError as e:
            record_refund("processor_error")
            logger.error(
                "refund_failed",
                booking_id=booking.id,
                payment_reference=booking.payment_intent_id,
                amount=str(refund_amount),
                error=e.message,
            )
            raise

        refund_amount = (Decimal(refund.amount_minor_units) / 100).quantize(Decimal("0.01"))
        refund_status = refund.status
        logger.info(
            "refund_issued",
            booking_id=booking.id,
            refund_id=refund.refund_id,
            amount=str(refund_amount),
            status=refund_status,
        )
    elif refund_amount > 0:
        # Nothing was charged, so there is nothing to give back
        logger.info("refund_skipped_no_payment", booking_id=booking.id, status=booking.status)
        refund_amount = Decimal("0.00")

    new_status = BookingStatus.REFUNDED if refund_amount > 0 else BookingStatus.CANCELLED

    try:
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == prior_status)
            .values(
                status=new_status,
                cancelled_at=datetime.now(timezone.utc),
                cancelled_by=cancelled_by,
                cancellation_reason=reason,
                refund_amount=refund_amount,
                refund_status=refund_status,
            )
            .returning(Booking.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.scalar_one_or_none()
        if updated is not None and booking.customer_id is not None:
            await recompute_customer_stats(db, booking.customer_id)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        if refund_status == "none":
            logger.error("booking_cancel_failed", booking_id=booking_id, error=str(e))
            raise PersistenceError("Could not cancel the booking; please try again") from e
        return _refund_not_recorded(booking_id, new_status, refund_amount, refund_status, str(e))

    if updated is None:
        # Another cancel or a payment-failed event got there first
        await db.refresh(booking)
        if refund_status != "none":
            return _refund_not_recorded(
                booking_id,
                new_status,
                refund_amount,
                refund_status,
                f"booking moved to {booking.status} during refund",
            )
        raise AlreadyCancelledError(f"Booking is already {booking.status}")

    record_refund("refunded" if new_status == BookingStatus.REFUNDED else "cancelled")
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        status=new_status,
        refund_policy=refund_policy,
        refund_amount=str(refund_amount),
        cancelled_by=cancelled_by,
    )

    await db.refresh(booking)
    await invalidate_availability(booking.booking_date)
    await notify(
        notifier,
        NotificationKind.BOOKING_CANCELLED,
        booking.customer_email,
        booking_fields(
            booking,
            refund_amount=f"{refund_amount:.2f}" if refund_amount > 0 else None,
            cancellation_reason=reason,
        ),
    )

    if new_status == BookingStatus.REFUNDED:
        message = f"Booking cancelled and ${refund_amount:.2f} refunded"
    else:
        message = "Booking cancelled successfully"
    return BookingCancelResponse(
        booking_id=booking.id,
        status=new_status,
        refund_amount=refund_amount,
        refund_status=refund_status,
        message=message,
    )
