"""
Stripe implementation of the PaymentGateway interface.

The Stripe SDK is synchronous, so every call runs in a worker thread and is
bounded by STRIPE_TIMEOUT_SECONDS. A timed-out call surfaces as a retryable
domain error instead of hanging the request. The worker thread itself cannot
be cancelled, which is why refunds carry an idempotency key: a manual retry
after a timeout can never refund twice.
"""

import asyncio
from typing import Any, Callable, Optional

import stripe

from studio_booking.core.exceptions import PaymentProcessingError, PaymentSessionError
from studio_booking.core.logging import get_logger
from studio_booking.services.interfaces import (
    HostedSession,
    PaymentGateway,
    RefundResult,
    SessionStatus,
)

logger = get_logger(__name__)


def _as_dict(obj: Any) -> dict:
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class StripeGateway(PaymentGateway):
    """Stripe Checkout sessions and Refunds."""

    def __init__(self, api_key: str, timeout_seconds: float = 15.0, max_network_retries: int = 2):
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        stripe.max_network_retries = max_network_retries

    async def _call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        return await asyncio.wait_for(
            asyncio.to_thread(fn, *args, api_key=self.api_key, **kwargs),
            timeout=self.timeout_seconds,
        )

    async def create_hosted_session(
        self,
        *,
        amount_minor_units: int,
        currency: str,
        description: str,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: dict,
        customer_email: Optional[str] = None,
    ) -> HostedSession:
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": product_name, "description": description},
                        "unit_amount": amount_minor_units,
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = await self._call(stripe.checkout.Session.create, **params)
        except asyncio.TimeoutError:
            logger.error("stripe_session_timeout", amount=amount_minor_units)
            raise PaymentSessionError("Payment provider timed out. Please try again.")
        except stripe.StripeError as e:
            logger.error("stripe_session_failed", error=str(e), amount=amount_minor_units)
            raise PaymentSessionError("Could not start checkout. Please try again.")

        return HostedSession(
            session_id=session.id,
            redirect_url=session.url,
            payment_reference=session.payment_intent,
        )

    async def retrieve_session(self, session_id: str) -> SessionStatus:
        try:
            session = await self._call(stripe.checkout.Session.retrieve, session_id)
        except asyncio.TimeoutError:
            raise PaymentSessionError("Payment provider timed out. Please try again.")
        except stripe.InvalidRequestError as e:
            logger.warning("stripe_session_lookup_failed", session_id=session_id, error=str(e))
            raise PaymentSessionError("Checkout session could not be found.")
        except stripe.StripeError as e:
            logger.error("stripe_session_lookup_failed", session_id=session_id, error=str(e))
            raise PaymentSessionError("Could not retrieve checkout session.")

        details = _as_dict(session.customer_details)
        return SessionStatus(
            session_id=session.id,
            payment_status=session.payment_status,
            payment_reference=session.payment_intent,
            customer_email=details.get("email"),
            metadata=_as_dict(session.metadata),
        )

    async def create_refund(
        self,
        *,
        payment_reference: str,
        amount_minor_units: int,
        reason: str,
        metadata: dict,
        idempotency_key: Optional[str] = None,
    ) -> RefundResult:
        try:
            refund = await self._call(
                stripe.Refund.create,
                payment_intent=payment_reference,
                amount=amount_minor_units,
                reason=reason,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except asyncio.TimeoutError:
            logger.error("stripe_refund_timeout", payment_reference=payment_reference)
            raise PaymentProcessingError("Refund request timed out at the payment provider")
        except stripe.StripeError as e:
            logger.error(
                "stripe_refund_failed",
                payment_reference=payment_reference,
                amount=amount_minor_units,
                error=str(e),
            )
            raise PaymentProcessingError(f"Failed to process refund: {e.user_message or str(e)}")

        return RefundResult(
            refund_id=refund.id,
            amount_minor_units=refund.amount,
            status=refund.status,
        )
