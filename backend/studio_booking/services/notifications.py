"""
Best-effort notification delivery.

A failed send is logged and counted, never raised: the state transition
that triggered it has already been committed and must not be rolled back
or retried because an email bounced.
"""

from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_notification
from studio_booking.models.booking import Booking
from studio_booking.services.interfaces import Notifier

logger = get_logger(__name__)


def booking_fields(booking: Booking, **extra) -> dict:
    fields = {
        "booking_id": booking.id,
        "customer_name": booking.customer_name,
        "service_name": booking.service_name or "Booking",
        "booking_date": booking.booking_date.isoformat(),
        "booking_time": booking.booking_time.strftime("%H:%M"),
        "price": f"{booking.price:.2f}",
    }
    fields.update(extra)
    return fields


async def notify(notifier: Notifier, template_kind: str, to: str, fields: dict) -> bool:
    try:
        await notifier.send(template_kind, to, fields)
    except Exception as e:
        logger.error(
            "notification_failed",
            template=template_kind,
            to=to,
            booking_id=fields.get("booking_id"),
            error=str(e),
        )
        record_notification(template_kind, sent=False)
        return False

    record_notification(template_kind, sent=True)
    return True
