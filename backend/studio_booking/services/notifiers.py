"""
Notifier implementations.

Template rendering is deliberately minimal: a subject per notification kind
and a plain HTML summary of the fields. Resend's SDK is synchronous, so the
send runs in a worker thread.
"""

import asyncio
import html

import resend

from studio_booking.core.logging import get_logger
from studio_booking.services.interfaces import Notifier, NotificationKind

logger = get_logger(__name__)

SUBJECTS = {
    NotificationKind.BOOKING_CONFIRMED: "Booking Confirmed - Your Appointment Details",
    NotificationKind.PAYMENT_FAILED: "Payment Failed - Action Required",
    NotificationKind.BOOKING_CANCELLED: "Booking Cancelled - Confirmation",
    NotificationKind.REFUND_ISSUED: "Refund Processed - Confirmation",
}

FIELD_LABELS = {
    "customer_name": "Name",
    "service_name": "Service",
    "booking_date": "Date",
    "booking_time": "Time",
    "price": "Amount",
    "refund_amount": "Refund",
    "cancellation_reason": "Reason",
    "booking_id": "Booking reference",
}


def render_html(template_kind: str, fields: dict, company_name: str) -> str:
    rows = "".join(
        f"<tr><td>{html.escape(label)}</td><td>{html.escape(str(fields[key]))}</td></tr>"
        for key, label in FIELD_LABELS.items()
        if fields.get(key) is not None
    )
    title = html.escape(SUBJECTS.get(template_kind, template_kind))
    return (
        f"<h2>{title}</h2>"
        f"<table>{rows}</table>"
        f"<p>{html.escape(company_name)}</p>"
    )


class ResendNotifier(Notifier):
    def __init__(self, api_key: str, from_address: str, company_name: str):
        self.from_address = from_address
        self.company_name = company_name
        resend.api_key = api_key

    async def send(self, template_kind: str, to: str, fields: dict) -> None:
        params = {
            "from": f"{self.company_name} <{self.from_address}>",
            "to": [to],
            "subject": SUBJECTS.get(template_kind, self.company_name),
            "html": render_html(template_kind, fields, self.company_name),
        }
        response = await asyncio.to_thread(resend.Emails.send, params)
        logger.info("email_sent", template=template_kind, to=to, email_id=response.get("id"))


class LogNotifier(Notifier):
    """Used when no email provider is configured."""

    async def send(self, template_kind: str, to: str, fields: dict) -> None:
        logger.info("notification_logged", template=template_kind, to=to, fields=fields)
