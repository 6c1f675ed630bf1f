"""
Payment journal row, one per completed checkout session.

Later processor events update `status` in place; `session_id` is unique so
a redelivered checkout event cannot insert a second row.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, JSON, CheckConstraint

from studio_booking.db.base import Base, TimestampMixin


class PaymentStatus:
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    session_id = Column(String(255), nullable=False, unique=True)
    payment_reference = Column(String(255), nullable=True, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String(20), nullable=False, default=PaymentStatus.SUCCEEDED)
    payment_method = Column(String(50), nullable=True)
    customer_email = Column(String(255), nullable=True)
    booking_data = Column(JSON, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('succeeded', 'failed', 'refunded')",
            name="check_payment_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking={self.booking_id}, status={self.status})>"
