"""
Pydantic schemas for payment journal and customer directory views.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    customer_id: Optional[int]
    session_id: str
    payment_reference: Optional[str]
    amount: Decimal
    currency: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str]
    total_spent: Decimal
    last_booking_date: Optional[date]
    created_at: datetime

    model_config = {"from_attributes": True}
