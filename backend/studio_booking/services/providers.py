"""
Provider factory for external collaborators.
Picks the payment gateway and notifier implementations from configuration.
Route handlers depend on these functions, and tests override them through
`app.dependency_overrides`.
"""

from functools import lru_cache

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.services.interfaces import Notifier, PaymentGateway
from studio_booking.services.notifiers import LogNotifier, ResendNotifier
from studio_booking.services.stripe_gateway import StripeGateway

logger = get_logger(__name__)


@lru_cache()
def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return StripeGateway(
        api_key=settings.STRIPE_SECRET_KEY,
        timeout_seconds=settings.STRIPE_TIMEOUT_SECONDS,
        max_network_retries=settings.STRIPE_MAX_NETWORK_RETRIES,
    )


@lru_cache()
def get_notifier() -> Notifier:
    """
    Resend when an API key is configured, otherwise log-only.
    Can be overridden via the RESEND_API_KEY env var.
    """
    settings = get_settings()
    if settings.RESEND_API_KEY:
        return ResendNotifier(
            api_key=settings.RESEND_API_KEY,
            from_address=settings.EMAIL_FROM_ADDRESS,
            company_name=settings.COMPANY_NAME,
        )
    logger.warning("email_disabled", message="RESEND_API_KEY not set, notifications are logged only")
    return LogNotifier()
