"""
Payment processor webhook ingress.

Response codes drive the processor's retry behaviour:
  - 400: signature invalid, never retried usefully
  - 503: datastore failure, the processor redelivers later
  - 200: applied, duplicate, or an event type we ignore
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import notifier_dependency
from studio_booking.core.config import get_settings
from studio_booking.core.exceptions import SignatureVerificationError
from studio_booking.core.logging import get_logger
from studio_booking.db.session import get_db
from studio_booking.services.interfaces import Notifier
from studio_booking.services.payment_events import translate_event, verify_webhook
from studio_booking.services.reconciliation_service import handle_event

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/payment")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    notifier: Notifier = Depends(notifier_dependency),
    db: AsyncSession = Depends(get_db),
):
    payload = await request.body()
    try:
        raw_event = verify_webhook(payload, stripe_signature, get_settings().STRIPE_WEBHOOK_SECRET)
    except SignatureVerificationError as e:
        logger.warning("webhook_signature_invalid", error=e.message)
        raise

    event = translate_event(raw_event)
    if event is None:
        logger.info("webhook_event_ignored", event_type=raw_event.get("type"), event_id=raw_event.get("id"))
        return {"received": True}

    logger.info("webhook_event_received", event_type=raw_event.get("type"), event_id=raw_event.get("id"))
    await handle_event(db, notifier, event)
    return {"received": True}
