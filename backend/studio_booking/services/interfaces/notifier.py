"""
Outbound customer notification interface.
"""

from abc import ABC, abstractmethod


class NotificationKind:
    BOOKING_CONFIRMED = "booking_confirmed"
    PAYMENT_FAILED = "payment_failed"
    BOOKING_CANCELLED = "booking_cancelled"
    REFUND_ISSUED = "refund_issued"


class Notifier(ABC):
    """
    Interface for customer notifications.

    Implementations:
    - ResendNotifier: transactional email through Resend
    - LogNotifier: writes the notification to the log (no email configured)

    Sending is best-effort: implementations may raise, and callers log the
    failure without rolling back the state change that triggered it.
    """

    @abstractmethod
    async def send(self, template_kind: str, to: str, fields: dict) -> None:
        pass
