"""
Read side of the ledger: admin list views and the post-checkout sync check.

Nothing here writes a booking, payment or customer. Status transitions
belong to the reconciliation handler and the cancellation coordinator.
"""

from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import NotFoundError, ValidationError
from studio_booking.core.logging import get_logger
from studio_booking.models.booking import Booking
from studio_booking.models.customer import Customer
from studio_booking.models.payment import Payment
from studio_booking.schemas.booking import BookingResponse, BookingVerificationResponse
from studio_booking.schemas.payment import CustomerResponse, PaymentResponse

logger = get_logger(__name__)

NOT_SYNCED_MESSAGE = (
    "Your payment could not be verified yet. Please do not retry the payment; "
    "contact support if your booking does not appear shortly."
)


async def _paginate(db: AsyncSession, query, page: int, page_size: int) -> tuple[list, int]:
    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    return list(result.scalars().all()), total or 0


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def list_bookings(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    status: Optional[str] = None,
    booking_date: Optional[date] = None,
    customer_email: Optional[str] = None,
) -> tuple[list[Booking], int]:
    query = select(Booking)
    if status:
        query = query.where(Booking.status == status)
    if booking_date:
        query = query.where(Booking.booking_date == booking_date)
    if customer_email:
        query = query.where(Booking.customer_email == customer_email.strip().lower())
    query = query.order_by(Booking.booking_date.desc(), Booking.booking_time.desc(), Booking.id.desc())
    return await _paginate(db, query, page, page_size)


async def list_payments(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    status: Optional[str] = None,
) -> tuple[list[Payment], int]:
    query = select(Payment)
    if status:
        query = query.where(Payment.status == status)
    return await _paginate(db, query.order_by(Payment.id.desc()), page, page_size)


async def list_customers(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Customer], int]:
    query = select(Customer).order_by(Customer.total_spent.desc(), Customer.id)
    return await _paginate(db, query, page, page_size)


async def verify_booking(
    db: AsyncSession,
    session_id: Optional[str] = None,
    payment_reference: Optional[str] = None,
) -> BookingVerificationResponse:
    """
    Report whether the webhook has landed for a checkout. synced is true
    only once the booking, its payment and its customer all exist.
    """
    if not session_id and not payment_reference:
        raise ValidationError("session_id or payment_intent_id is required")

    if session_id:
        booking_criteria = Booking.session_id == session_id
        payment_criteria = Payment.session_id == session_id
    else:
        booking_criteria = Booking.payment_intent_id == payment_reference
        payment_criteria = Payment.payment_reference == payment_reference

    booking = (await db.execute(select(Booking).where(booking_criteria).limit(1))).scalar_one_or_none()
    payment = (await db.execute(select(Payment).where(payment_criteria).limit(1))).scalar_one_or_none()
    customer = None
    if booking is not None and booking.customer_id is not None:
        customer = await db.get(Customer, booking.customer_id)

    synced = booking is not None and payment is not None and customer is not None
    logger.info(
        "booking_verified",
        session_id=session_id,
        payment_reference=payment_reference,
        has_booking=booking is not None,
        has_payment=payment is not None,
        has_customer=customer is not None,
        synced=synced,
    )
    return BookingVerificationResponse(
        booking=BookingResponse.model_validate(booking) if booking else None,
        payment=PaymentResponse.model_validate(payment) if payment else None,
        customer=CustomerResponse.model_validate(customer) if customer else None,
        synced=synced,
        message=None if synced else NOT_SYNCED_MESSAGE,
    )
