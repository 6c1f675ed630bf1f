"""
Checkout orchestrator.

Opens a hosted payment session for a booking draft and writes nothing to
the ledger: the draft travels to the processor as session metadata and the
reconciliation handler creates the booking once payment completes. An
abandoned checkout therefore leaves no pending row behind, and there is no
race between a local insert here and the webhook looking for it.

The only local reads are the slot check (is this a generated slot, does it
have room) and the package price check.
"""

import json
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.exceptions import (
    PaymentSessionError,
    SlotUnavailableError,
    ValidationError,
)
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_checkout
from studio_booking.models.package import Package
from studio_booking.schemas.checkout import BookingDraft, CheckoutStatusResponse
from studio_booking.services.availability_service import find_slot, studio_today
from studio_booking.services.interfaces import HostedSession, PaymentGateway
from studio_booking.services.payment_events import BOOKING_DATA_KEY

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Round half-up to whole cents; truncation would systematically undercharge."""
    return int((Decimal(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


async def _validate_draft(db: AsyncSession, draft: BookingDraft) -> int:
    """Returns the template id of the slot the draft books."""
    if draft.date < studio_today():
        raise ValidationError("Booking date cannot be in the past")

    if to_minor_units(draft.price) <= 0:
        raise ValidationError("Price must be at least 0.01")

    if draft.package_id is not None:
        package = await db.get(Package, draft.package_id)
        if not package or not package.is_active:
            raise ValidationError(f"Package {draft.package_id} is not available")
        if Decimal(draft.price) != package.price:
            raise ValidationError("Price does not match the selected package")

    slot = await find_slot(db, draft.date, draft.time)
    if slot is None:
        raise ValidationError(
            f"{draft.time.strftime('%H:%M')} on {draft.date.isoformat()} is not a bookable time slot"
        )
    if not slot.available:
        logger.info(
            "checkout_slot_full",
            date=draft.date.isoformat(),
            time=draft.time.strftime("%H:%M"),
            current=slot.current_bookings,
            capacity=slot.max_capacity,
        )
        raise SlotUnavailableError(
            "This time slot is fully booked. Please choose a different time."
        )
    return slot.template_id


async def create_checkout(
    db: AsyncSession,
    gateway: PaymentGateway,
    draft: BookingDraft,
) -> HostedSession:
    settings = get_settings()

    try:
        template_id = await _validate_draft(db, draft)
    except (ValidationError, SlotUnavailableError):
        record_checkout("rejected")
        raise

    booking_data = draft.model_dump(mode="json")
    booking_data["time_slot_template_id"] = template_id
    amount_minor_units = to_minor_units(draft.price)

    try:
        session = await gateway.create_hosted_session(
            amount_minor_units=amount_minor_units,
            currency=settings.CURRENCY,
            product_name=draft.service_name,
            description=f"Booking for {draft.date.isoformat()} at {draft.time.strftime('%H:%M')}",
            success_url=f"{settings.SITE_URL}/booking/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.SITE_URL}/booking/cancel",
            customer_email=draft.customer_email,
            metadata={BOOKING_DATA_KEY: json.dumps(booking_data)},
        )
    except PaymentSessionError:
        record_checkout("error")
        raise

    record_checkout("created")
    logger.info(
        "checkout_session_created",
        session_id=session.session_id,
        amount=amount_minor_units,
        date=draft.date.isoformat(),
        time=draft.time.strftime("%H:%M"),
    )
    return session


async def get_checkout_status(gateway: PaymentGateway, session_id: str) -> CheckoutStatusResponse:
    status = await gateway.retrieve_session(session_id)

    metadata = dict(status.metadata)
    raw = metadata.pop(BOOKING_DATA_KEY, None)
    if raw:
        try:
            metadata[BOOKING_DATA_KEY] = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            metadata[BOOKING_DATA_KEY] = raw

    return CheckoutStatusResponse(
        status=status.payment_status,
        payment_reference=status.payment_reference,
        customer_email=status.customer_email,
        metadata=metadata,
    )
