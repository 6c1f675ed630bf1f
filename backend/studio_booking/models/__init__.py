from studio_booking.models.user import User
from studio_booking.models.package import Package
from studio_booking.models.slot_template import SlotTemplate
from studio_booking.models.customer import Customer
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.payment import Payment, PaymentStatus

__all__ = [
    "User",
    "Package",
    "SlotTemplate",
    "Customer",
    "Booking",
    "BookingStatus",
    "Payment",
    "PaymentStatus",
]
