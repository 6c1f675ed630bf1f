"""
Customer directory, keyed by email.

`total_spent` and `last_booking_date` are derived from bookings and only
ever written by the stats recompute in customer_service.
"""

from sqlalchemy import Column, Integer, String, Numeric, Date

from studio_booking.db.base import Base, TimestampMixin


class Customer(Base, TimestampMixin):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    total_spent = Column(Numeric(12, 2), nullable=False, default=0)
    last_booking_date = Column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, email={self.email})>"
