"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment_gateway import PaymentGateway, HostedSession, SessionStatus, RefundResult
from .notifier import Notifier, NotificationKind

__all__ = [
    'PaymentGateway', 'HostedSession', 'SessionStatus', 'RefundResult',
    'Notifier', 'NotificationKind',
]
