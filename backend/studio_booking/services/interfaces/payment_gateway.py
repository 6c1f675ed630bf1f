"""
Payment processor interface.
Allows swapping the hosted-checkout provider (or a fake in tests) without
changing checkout, reconciliation or refund logic.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class HostedSession:
    session_id: str
    redirect_url: str
    payment_reference: Optional[str] = None


@dataclass
class SessionStatus:
    session_id: str
    payment_status: str  # "paid", "unpaid", "no_payment_required"
    payment_reference: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: dict = field(default_factory=dict)


@dataclass
class RefundResult:
    refund_id: str
    amount_minor_units: int
    status: str


class PaymentGateway(ABC):
    """
    Interface for the external payment processor.

    Implementations:
    - StripeGateway: Stripe Checkout + Refunds
    - FakeGateway (tests): in-memory sessions and refunds

    Every method raises PaymentSessionError / PaymentProcessingError on
    processor failure or timeout; callers never see SDK exceptions.
    """

    @abstractmethod
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
        """Open a hosted checkout for exactly `amount_minor_units`."""
        pass

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> SessionStatus:
        pass

    @abstractmethod
    async def create_refund(
        self,
        *,
        payment_reference: str,
        amount_minor_units: int,
        reason: str,
        metadata: dict,
        idempotency_key: Optional[str] = None,
    ) -> RefundResult:
        """Refund `amount_minor_units` of the charge behind `payment_reference`."""
        pass
