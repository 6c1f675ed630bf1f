"""
Customer directory: email-keyed upsert and aggregate stats.
"""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.logging import get_logger
from studio_booking.db.upsert import insert_if_absent
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.customer import Customer

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_customer_by_email(db: AsyncSession, email: str) -> Optional[Customer]:
    result = await db.execute(
        select(Customer)
        .where(Customer.email == normalize_email(email))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_customer(
    db: AsyncSession,
    email: str,
    name: Optional[str],
    phone: Optional[str] = None,
) -> Customer:
    """
    Insert the customer unless the email is already known. Two concurrent
    checkouts for the same email both end up with the single row the
    unique constraint allows.
    """
    email = normalize_email(email)
    new_id = await insert_if_absent(
        db,
        Customer,
        {"name": name or email, "email": email, "phone": phone, "total_spent": 0},
        conflict_columns=["email"],
    )
    customer = await get_customer_by_email(db, email)
    if new_id is not None:
        logger.info("customer_created", customer_id=new_id, email=email)
    return customer


async def recompute_customer_stats(db: AsyncSession, customer_id: int) -> bool:
    """
    Rewrite total_spent and last_booking_date from the customer's confirmed
    bookings in one statement.

    Runs inside a SAVEPOINT: if it fails, only the recompute is rolled back
    and the caller's booking/payment writes survive. Returns False on failure.
    """
    confirmed = (
        Booking.customer_id == customer_id,
        Booking.status == BookingStatus.CONFIRMED,
    )
    total_spent = (
        select(func.coalesce(func.sum(Booking.price), 0)).where(*confirmed).scalar_subquery()
    )
    last_booking_date = select(func.max(Booking.booking_date)).where(*confirmed).scalar_subquery()

    try:
        async with db.begin_nested():
            await db.execute(
                update(Customer)
                .where(Customer.id == customer_id)
                .values(total_spent=total_spent, last_booking_date=last_booking_date)
                .execution_options(synchronize_session=False)
            )
    except SQLAlchemyError as e:
        logger.error("customer_stats_recompute_failed", customer_id=customer_id, error=str(e))
        return False

    return True
