"""
Booking ledger row.

Key design decisions:
- `session_id` is unique: it is the idempotency key the reconciliation
  handler upserts on, so a redelivered checkout event can never create a
  second row
- Status moves pending -> confirmed -> {cancelled, refunded}, or
  pending -> cancelled; cancelled and refunded are terminal
- Cancelled/refunded rows are kept (never deleted) and simply stop counting
  toward slot capacity
"""

from sqlalchemy import (
    Column, Integer, String, Date, Time, DateTime, Numeric, ForeignKey, Index, CheckConstraint,
)

from studio_booking.db.base import Base, TimestampMixin


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    # Holds capacity in the availability engine
    ACTIVE = (PENDING, CONFIRMED)
    # No transition out of these
    TERMINAL = (CANCELLED, REFUNDED)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(String(50), ForeignKey("packages.id"), nullable=True)
    service_name = Column(String(255), nullable=True)
    time_slot_template_id = Column(Integer, ForeignKey("slot_templates.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)

    booking_date = Column(Date, nullable=False)
    booking_time = Column(Time, nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(50), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING)
    session_id = Column(String(255), nullable=True, unique=True)
    payment_intent_id = Column(String(255), nullable=True, index=True)

    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refund_status = Column(String(50), nullable=True)
    refund_notified_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("price > 0", name="check_booking_price_positive"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'refunded')",
            name="check_booking_status",
        ),
        # Capacity count: bookings on date D at time T with an active status
        Index("ix_bookings_date_time_status", "booking_date", "booking_time", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, {self.booking_date} {self.booking_time}, "
            f"status={self.status}, session={self.session_id})>"
        )
