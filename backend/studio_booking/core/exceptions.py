"""
Domain exceptions for the booking service.

Services raise these instead of HTTPException so the same code can run
behind the HTTP routes, the webhook endpoint and the tests. Each carries
the status code the API layer answers with; `main.py` registers a single
handler that renders `{"detail": message}`.
"""

from fastapi import status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class BookingServiceError(Exception):
    """Base exception for all booking service errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(BookingServiceError):
    """Malformed input, rejected before any I/O."""

    status_code = HTTP_422_UNPROCESSABLE


class NotFoundError(BookingServiceError):
    """Booking, session or payment reference does not resolve."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BookingServiceError):
    """Requested transition is not allowed from the current state."""

    status_code = status.HTTP_400_BAD_REQUEST


class AlreadyCancelledError(ConflictError):
    """Booking is already cancelled or refunded."""


class SlotUnavailableError(ConflictError):
    """The requested slot has no remaining capacity."""

    status_code = status.HTTP_409_CONFLICT


class PaymentSessionError(BookingServiceError):
    """Processor rejected or timed out while creating a checkout session."""

    status_code = status.HTTP_502_BAD_GATEWAY


class PaymentProcessingError(BookingServiceError):
    """Refund or charge call failed at the processor."""

    status_code = status.HTTP_502_BAD_GATEWAY


class PersistenceError(BookingServiceError):
    """Datastore write failed. Webhook callers answer with a retryable status."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class SignatureVerificationError(BookingServiceError):
    """Inbound webhook payload failed the signature check."""

    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDeniedError(BookingServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class AuthenticationError(BookingServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
