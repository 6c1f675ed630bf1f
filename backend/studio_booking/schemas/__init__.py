from studio_booking.schemas.user import UserCreate, UserUpdate, UserResponse, UserLogin, Token
from studio_booking.schemas.package import PackageCreate, PackageUpdate, PackageResponse
from studio_booking.schemas.slot_template import (
    SlotTemplateCreate, SlotTemplateUpdate, SlotTemplateResponse, SlotView,
)
from studio_booking.schemas.checkout import BookingDraft, CheckoutResponse, CheckoutStatusResponse
from studio_booking.schemas.booking import (
    BookingResponse, BookingListResponse, BookingCancelRequest, BookingCancelResponse,
    BookingVerificationResponse, PaymentListResponse, CustomerListResponse,
)
from studio_booking.schemas.payment import PaymentResponse, CustomerResponse

__all__ = [
    "UserCreate", "UserUpdate", "UserResponse", "UserLogin", "Token",
    "PackageCreate", "PackageUpdate", "PackageResponse",
    "SlotTemplateCreate", "SlotTemplateUpdate", "SlotTemplateResponse", "SlotView",
    "BookingDraft", "CheckoutResponse", "CheckoutStatusResponse",
    "BookingResponse", "BookingListResponse", "BookingCancelRequest", "BookingCancelResponse",
    "BookingVerificationResponse", "PaymentListResponse", "CustomerListResponse",
    "PaymentResponse", "CustomerResponse",
]
