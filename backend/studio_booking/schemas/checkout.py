"""
Pydantic schemas for hosted checkout.
"""

import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class BookingDraft(BaseModel):
    """
    Everything needed to create the booking once payment completes.
    Serialized into the processor session metadata as-is.
    """

    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(None, max_length=50)
    package_id: Optional[str] = Field(None, max_length=50)
    service_name: str = Field(default="Booking Service", min_length=1, max_length=255)
    price: Decimal = Field(..., gt=0, le=Decimal("99999999.99"))
    date: datetime.date
    time: datetime.time
    time_slot_template_id: Optional[int] = None


class CheckoutResponse(BaseModel):
    session_id: str
    url: str


class CheckoutStatusResponse(BaseModel):
    status: str
    payment_reference: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
