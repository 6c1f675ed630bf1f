"""
Processor-neutral payment events consumed by the reconciliation handler.

The webhook adapter translates raw processor payloads into one of these;
nothing downstream of it sees processor-specific field names.
"""

from decimal import Decimal
from typing import Literal, Optional, Union
from pydantic import BaseModel, Field


class CheckoutCompleted(BaseModel):
    kind: Literal["checkout_completed"] = "checkout_completed"
    session_id: str
    payment_reference: Optional[str] = None
    amount: Optional[Decimal] = None  # major units
    currency: str = "usd"
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_method: Optional[str] = None
    booking_data: dict = Field(default_factory=dict)


class PaymentSucceeded(BaseModel):
    kind: Literal["payment_succeeded"] = "payment_succeeded"
    payment_reference: str


class PaymentFailed(BaseModel):
    kind: Literal["payment_failed"] = "payment_failed"
    payment_reference: str
    failure_message: Optional[str] = None


class ChargeRefunded(BaseModel):
    kind: Literal["charge_refunded"] = "charge_refunded"
    payment_reference: str
    amount_refunded: Optional[Decimal] = None  # major units


PaymentEvent = Union[CheckoutCompleted, PaymentSucceeded, PaymentFailed, ChargeRefunded]
