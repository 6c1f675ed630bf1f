"""
Reconciliation handler: drives bookings, payments and customers to a
consistent state from asynchronous payment-processor events.

DELIVERY MODEL
==============

The processor delivers at least once and does not order events across
types. So:
  - the same event may arrive twice, possibly concurrently
  - payment_succeeded may arrive before checkout_completed

IDEMPOTENCY STRATEGY
====================

Every write is keyed and atomic at the database level; there is no
read-then-write on a dedup key anywhere in this module:

  1. Rows keyed by session_id (booking, payment) and email (customer) are
     created with INSERT ... ON CONFLICT DO NOTHING RETURNING id. Exactly
     one delivery gets an id back.
  2. Status transitions are conditional UPDATEs:
       UPDATE bookings SET status = 'confirmed' ... WHERE session_id = :sid
                                                  AND status = 'pending'
     If zero rows match, some other delivery already made the transition.
  3. A notification is sent only by the delivery whose insert or
     conditional update actually changed the row, so a redelivered event
     never produces a second email.

FAILURE SEMANTICS
=================

  - Any datastore error rolls back the whole event and surfaces as
    PersistenceError; the webhook answers 503 and the processor retries
  - Customer stats recompute runs in a SAVEPOINT; its failure is logged
    and the event still commits
  - Notifications are sent after commit and are best-effort
"""

import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as time_type, timezone
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import PersistenceError
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_reconciliation, reconciliation_latency
from studio_booking.db.upsert import insert_if_absent
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.payment import Payment, PaymentStatus
from studio_booking.schemas.payment_event import (
    ChargeRefunded,
    CheckoutCompleted,
    PaymentEvent,
    PaymentFailed,
    PaymentSucceeded,
)
from studio_booking.services.availability_service import find_slot
from studio_booking.services.cache_service import invalidate_availability
from studio_booking.services.customer_service import (
    get_or_create_customer,
    normalize_email,
    recompute_customer_stats,
)
from studio_booking.services.interfaces import NotificationKind, Notifier
from studio_booking.services.notifications import booking_fields, notify

logger = get_logger(__name__)


@dataclass
class _PendingNotification:
    template_kind: str
    to: str
    fields: dict


@dataclass
class EventResult:
    """What applying one event did. `outcome` is one of applied, duplicate, noop, invalid."""

    outcome: str
    booking_id: Optional[int] = None
    notifications: list[_PendingNotification] = field(default_factory=list)
    touched_dates: set[date] = field(default_factory=set)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _load_booking(db: AsyncSession, *criteria) -> Optional[Booking]:
    result = await db.execute(
        select(Booking).where(*criteria).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _parse_draft(event: CheckoutCompleted) -> Optional[dict]:
    """
    Booking columns reconstructed from the session metadata, or None if
    the metadata is too incomplete to create a booking from.
    """
    data = event.booking_data
    try:
        booking_date = date.fromisoformat(data["date"])
        booking_time = time_type.fromisoformat(data["time"]).replace(second=0, microsecond=0)
        price = event.amount if event.amount is not None else Decimal(str(data["price"]))
    except (KeyError, TypeError, ValueError, InvalidOperation):
        return None

    email = event.customer_email or data.get("customer_email")
    if not email or price <= 0:
        return None

    return {
        "package_id": data.get("package_id"),
        "service_name": data.get("service_name"),
        "time_slot_template_id": data.get("time_slot_template_id"),
        "booking_date": booking_date,
        "booking_time": booking_time,
        "customer_name": event.customer_name or data.get("customer_name") or email,
        "customer_email": normalize_email(email),
        "customer_phone": event.customer_phone or data.get("customer_phone"),
        "price": price,
    }


# ── checkout_completed ────────────────────────────────────────────────────────

async def _confirm_booking(
    db: AsyncSession,
    event: CheckoutCompleted,
    draft: Optional[dict],
    customer_id: Optional[int],
) -> tuple[Optional[Booking], bool]:
    """
    Make sure a confirmed booking exists for the session.
    Returns (booking, first_confirmation).
    """
    now = _now()

    if draft is not None:
        inserted_id = await insert_if_absent(
            db,
            Booking,
            {
                **draft,
                "customer_id": customer_id,
                "status": BookingStatus.CONFIRMED,
                "session_id": event.session_id,
                "payment_intent_id": event.payment_reference,
                "confirmed_at": now,
            },
            conflict_columns=["session_id"],
        )
        if inserted_id is not None:
            logger.info(
                "reconciliation_booking_created",
                booking_id=inserted_id,
                session_id=event.session_id,
            )
            return await _load_booking(db, Booking.id == inserted_id), True

    # A row already exists for the session: promote it if still pending
    result = await db.execute(
        update(Booking)
        .where(
            Booking.session_id == event.session_id,
            Booking.status == BookingStatus.PENDING,
        )
        .values(
            status=BookingStatus.CONFIRMED,
            confirmed_at=now,
            customer_id=customer_id,
            payment_intent_id=event.payment_reference,
        )
        .returning(Booking.id)
        .execution_options(synchronize_session=False)
    )
    promoted_id = result.scalar_one_or_none()
    if promoted_id is not None:
        logger.info(
            "reconciliation_booking_confirmed",
            booking_id=promoted_id,
            session_id=event.session_id,
        )
        return await _load_booking(db, Booking.id == promoted_id), True

    booking = await _load_booking(db, Booking.session_id == event.session_id)
    if booking is None:
        return None, False

    if booking.status == BookingStatus.CONFIRMED:
        # Redelivery: re-apply the same linkage, which is safe to repeat
        await db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatus.CONFIRMED)
            .values(
                customer_id=customer_id or booking.customer_id,
                payment_intent_id=event.payment_reference or booking.payment_intent_id,
            )
            .execution_options(synchronize_session=False)
        )
        booking = await _load_booking(db, Booking.id == booking.id)
    else:
        logger.warning(
            "reconciliation_booking_terminal",
            booking_id=booking.id,
            session_id=event.session_id,
            status=booking.status,
        )
    return booking, False


async def _record_payment(
    db: AsyncSession,
    event: CheckoutCompleted,
    booking: Booking,
    customer_id: Optional[int],
) -> None:
    inserted_id = await insert_if_absent(
        db,
        Payment,
        {
            "booking_id": booking.id,
            "customer_id": customer_id,
            "session_id": event.session_id,
            "payment_reference": event.payment_reference,
            "amount": event.amount if event.amount is not None else booking.price,
            "currency": event.currency,
            "status": PaymentStatus.SUCCEEDED,
            "payment_method": event.payment_method,
            "customer_email": booking.customer_email,
            "booking_data": event.booking_data,
        },
        conflict_columns=["session_id"],
    )
    if inserted_id is not None:
        logger.info("reconciliation_payment_recorded", payment_id=inserted_id, booking_id=booking.id)
        return

    await db.execute(
        update(Payment)
        .where(
            Payment.session_id == event.session_id,
            Payment.status != PaymentStatus.REFUNDED,
        )
        .values(status=PaymentStatus.SUCCEEDED)
        .execution_options(synchronize_session=False)
    )
    if event.payment_reference:
        await db.execute(
            update(Payment)
            .where(Payment.session_id == event.session_id, Payment.payment_reference.is_(None))
            .values(payment_reference=event.payment_reference)
            .execution_options(synchronize_session=False)
        )


async def _check_capacity(db: AsyncSession, booking: Booking) -> None:
    slot = await find_slot(db, booking.booking_date, booking.booking_time)
    if slot is not None and slot.current_bookings > slot.max_capacity:
        # Paid checkouts are never refused; flag for manual follow-up
        logger.warning(
            "slot_overbooked",
            booking_id=booking.id,
            date=booking.booking_date.isoformat(),
            time=booking.booking_time.strftime("%H:%M"),
            current=slot.current_bookings,
            capacity=slot.max_capacity,
        )


async def _handle_checkout_completed(db: AsyncSession, event: CheckoutCompleted) -> EventResult:
    draft = _parse_draft(event)
    if draft is None and await _load_booking(db, Booking.session_id == event.session_id) is None:
        logger.error(
            "reconciliation_metadata_incomplete",
            session_id=event.session_id,
            keys=sorted(event.booking_data),
        )
        return EventResult(outcome="invalid")

    email = (draft or {}).get("customer_email") or event.customer_email

    customer = None
    if email:
        customer = await get_or_create_customer(
            db,
            email,
            name=(draft or {}).get("customer_name") or event.customer_name,
            phone=(draft or {}).get("customer_phone") or event.customer_phone,
        )
    customer_id = customer.id if customer else None

    booking, first_confirmation = await _confirm_booking(db, event, draft, customer_id)
    if booking is None:
        return EventResult(outcome="invalid")

    await _record_payment(db, event, booking, customer_id or booking.customer_id)

    stats_customer = customer_id or booking.customer_id
    if stats_customer is not None:
        await recompute_customer_stats(db, stats_customer)

    result = EventResult(
        outcome="applied" if first_confirmation else "duplicate",
        booking_id=booking.id,
        touched_dates={booking.booking_date},
    )
    if first_confirmation:
        await _check_capacity(db, booking)
        result.notifications.append(
            _PendingNotification(
                NotificationKind.BOOKING_CONFIRMED,
                booking.customer_email,
                booking_fields(booking),
            )
        )
    return result


# ── payment_succeeded ─────────────────────────────────────────────────────────

async def _handle_payment_succeeded(db: AsyncSession, event: PaymentSucceeded) -> EventResult:
    result = await db.execute(
        update(Payment)
        .where(
            Payment.payment_reference == event.payment_reference,
            Payment.status != PaymentStatus.REFUNDED,
        )
        .values(status=PaymentStatus.SUCCEEDED)
        .returning(Payment.id)
        .execution_options(synchronize_session=False)
    )
    updated = result.scalars().all()
    if not updated:
        # checkout_completed has not landed yet; it will record the payment itself
        logger.info("reconciliation_payment_not_yet_recorded", payment_reference=event.payment_reference)
        return EventResult(outcome="noop")
    return EventResult(outcome="applied")


# ── payment_failed ────────────────────────────────────────────────────────────

async def _handle_payment_failed(db: AsyncSession, event: PaymentFailed) -> EventResult:
    await db.execute(
        update(Payment)
        .where(
            Payment.payment_reference == event.payment_reference,
            Payment.status != PaymentStatus.REFUNDED,
        )
        .values(status=PaymentStatus.FAILED)
        .execution_options(synchronize_session=False)
    )

    cancelled = await db.execute(
        update(Booking)
        .where(
            Booking.payment_intent_id == event.payment_reference,
            Booking.status.in_(BookingStatus.ACTIVE),
        )
        .values(
            status=BookingStatus.CANCELLED,
            cancelled_at=_now(),
            cancellation_reason="Payment failed",
        )
        .returning(Booking.id)
        .execution_options(synchronize_session=False)
    )
    cancelled_ids = cancelled.scalars().all()
    if not cancelled_ids:
        logger.info("reconciliation_payment_failed_no_active_booking", payment_reference=event.payment_reference)
        return EventResult(outcome="noop")

    result = EventResult(outcome="applied", booking_id=cancelled_ids[0])
    for booking_id in cancelled_ids:
        booking = await _load_booking(db, Booking.id == booking_id)
        logger.info(
            "reconciliation_booking_payment_failed",
            booking_id=booking.id,
            payment_reference=event.payment_reference,
            failure=event.failure_message,
        )
        if booking.customer_id is not None:
            await recompute_customer_stats(db, booking.customer_id)
        result.touched_dates.add(booking.booking_date)
        result.notifications.append(
            _PendingNotification(
                NotificationKind.PAYMENT_FAILED,
                booking.customer_email,
                booking_fields(booking),
            )
        )
    return result


# ── charge_refunded ───────────────────────────────────────────────────────────

async def _handle_charge_refunded(db: AsyncSession, event: ChargeRefunded) -> EventResult:
    await db.execute(
        update(Payment)
        .where(Payment.payment_reference == event.payment_reference)
        .values(status=PaymentStatus.REFUNDED)
        .execution_options(synchronize_session=False)
    )

    # Claim the refund notification; only the first delivery gets the row back
    claimed = await db.execute(
        update(Booking)
        .where(
            Booking.payment_intent_id == event.payment_reference,
            Booking.refund_notified_at.is_(None),
        )
        .values(refund_notified_at=_now())
        .returning(Booking.id)
        .execution_options(synchronize_session=False)
    )
    claimed_ids = claimed.scalars().all()
    if not claimed_ids:
        logger.info("reconciliation_refund_already_notified", payment_reference=event.payment_reference)
        return EventResult(outcome="duplicate")

    result = EventResult(outcome="applied", booking_id=claimed_ids[0])
    for booking_id in claimed_ids:
        booking = await _load_booking(db, Booking.id == booking_id)
        # Coordinator amount first; a dashboard refund or one that beat the
        # coordinator's commit only has the processor's figure
        refund_amount = booking.refund_amount or event.amount_refunded or booking.price
        logger.info(
            "reconciliation_refund_recorded",
            booking_id=booking.id,
            payment_reference=event.payment_reference,
            refund_amount=str(refund_amount),
        )
        result.notifications.append(
            _PendingNotification(
                NotificationKind.REFUND_ISSUED,
                booking.customer_email,
                booking_fields(booking, refund_amount=f"{refund_amount:.2f}"),
            )
        )
    return result


_HANDLERS: dict[str, Callable[[AsyncSession, PaymentEvent], Awaitable[EventResult]]] = {
    "checkout_completed": _handle_checkout_completed,
    "payment_succeeded": _handle_payment_succeeded,
    "payment_failed": _handle_payment_failed,
    "charge_refunded": _handle_charge_refunded,
}


async def handle_event(db: AsyncSession, notifier: Notifier, event: PaymentEvent) -> EventResult:
    """
    Apply one processor event and commit. Notifications go out only after
    the commit succeeds. Raises PersistenceError on any datastore failure,
    after rolling the whole event back.
    """
    handler = _HANDLERS[event.kind]
    start = time.perf_counter()

    try:
        result = await handler(db, event)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        record_reconciliation(event.kind, "error")
        logger.error("reconciliation_failed", event_type=event.kind, error=str(e))
        raise PersistenceError(f"Could not apply {event.kind} event; it should be retried")
    finally:
        reconciliation_latency.observe(time.perf_counter() - start)

    record_reconciliation(event.kind, result.outcome)
    logger.info(
        "reconciliation_event_applied",
        event_type=event.kind,
        outcome=result.outcome,
        booking_id=result.booking_id,
    )

    for day in result.touched_dates:
        await invalidate_availability(day)
    for pending in result.notifications:
        await notify(notifier, pending.template_kind, pending.to, pending.fields)

    return result
