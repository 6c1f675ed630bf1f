"""
Webhook ingress: signature verification and translation of Stripe events
into processor-neutral PaymentEvent objects.

Only the four event types the reconciliation handler understands are
translated; everything else maps to None and is acknowledged untouched.
"""

import json
from decimal import Decimal
from typing import Optional

import stripe

from studio_booking.core.exceptions import SignatureVerificationError
from studio_booking.core.logging import get_logger
from studio_booking.schemas.payment_event import (
    ChargeRefunded,
    CheckoutCompleted,
    PaymentEvent,
    PaymentFailed,
    PaymentSucceeded,
)

logger = get_logger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300
BOOKING_DATA_KEY = "booking_data"


def verify_webhook(payload: bytes, signature: Optional[str], secret: str) -> dict:
    """
    Check the Stripe-Signature header against the shared secret and return
    the decoded event. Raises SignatureVerificationError on any mismatch.
    """
    if not secret:
        raise SignatureVerificationError("Webhook secret not configured")
    if not signature:
        raise SignatureVerificationError("Missing webhook signature")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise SignatureVerificationError("Webhook payload is not valid UTF-8")

    try:
        stripe.WebhookSignature.verify_header(
            body, signature, secret, tolerance=SIGNATURE_TOLERANCE_SECONDS
        )
    except stripe.SignatureVerificationError as e:
        raise SignatureVerificationError(f"Invalid webhook signature: {e}")

    try:
        return json.loads(body)
    except json.JSONDecodeError:
        raise SignatureVerificationError("Webhook payload is not valid JSON")


def _minor_to_major(amount: Optional[int]) -> Optional[Decimal]:
    if amount is None:
        return None
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def _booking_data(metadata: Optional[dict], session_id: str) -> dict:
    raw = (metadata or {}).get(BOOKING_DATA_KEY)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("webhook_booking_data_unreadable", session_id=session_id)
        return {}
    return data if isinstance(data, dict) else {}


def translate_event(event: dict) -> Optional[PaymentEvent]:
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        details = obj.get("customer_details") or {}
        method_types = obj.get("payment_method_types") or []
        return CheckoutCompleted(
            session_id=obj["id"],
            payment_reference=obj.get("payment_intent"),
            amount=_minor_to_major(obj.get("amount_total")),
            currency=obj.get("currency") or "usd",
            customer_email=details.get("email") or obj.get("customer_email"),
            customer_name=details.get("name"),
            customer_phone=details.get("phone"),
            payment_method=method_types[0] if method_types else None,
            booking_data=_booking_data(obj.get("metadata"), obj["id"]),
        )

    if event_type == "payment_intent.succeeded":
        return PaymentSucceeded(payment_reference=obj["id"])

    if event_type == "payment_intent.payment_failed":
        last_error = obj.get("last_payment_error") or {}
        return PaymentFailed(
            payment_reference=obj["id"],
            failure_message=last_error.get("message"),
        )

    if event_type == "charge.refunded":
        payment_intent = obj.get("payment_intent")
        if not payment_intent:
            logger.info("webhook_refund_without_payment_intent", charge_id=obj.get("id"))
            return None
        return ChargeRefunded(
            payment_reference=payment_intent,
            amount_refunded=_minor_to_major(obj.get("amount_refunded")),
        )

    logger.info("webhook_event_unhandled", event_type=event_type)
    return None
