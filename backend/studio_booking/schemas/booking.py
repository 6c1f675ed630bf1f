"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field

from studio_booking.schemas.payment import CustomerResponse, PaymentResponse


class BookingResponse(BaseModel):
    id: int
    package_id: Optional[str]
    service_name: Optional[str]
    customer_id: Optional[int]
    booking_date: date
    booking_time: time
    customer_name: str
    customer_email: str
    customer_phone: Optional[str]
    price: Decimal
    status: str
    session_id: Optional[str]
    payment_intent_id: Optional[str]
    confirmed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]
    refund_amount: Optional[Decimal]
    refund_status: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int


class BookingCancelRequest(BaseModel):
    booking_id: int
    refund_policy: Literal["full", "partial", "none"] = "full"
    reason: str = Field(..., min_length=1, max_length=500)


class BookingCancelResponse(BaseModel):
    booking_id: int
    status: str
    refund_amount: Decimal
    refund_status: str
    warning: Optional[str] = None
    message: str = "Booking cancelled successfully"


class BookingVerificationResponse(BaseModel):
    """Sync state the success page shows after redirect from checkout."""

    booking: Optional[BookingResponse] = None
    payment: Optional[PaymentResponse] = None
    customer: Optional[CustomerResponse] = None
    synced: bool
    message: Optional[str] = None


class PaymentListResponse(BaseModel):
    payments: list[PaymentResponse]
    total: int
    page: int
    page_size: int


class CustomerListResponse(BaseModel):
    customers: list[CustomerResponse]
    total: int
    page: int
    page_size: int
