"""
Hosted checkout endpoints. Public: customers are not logged in.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import gateway_dependency
from studio_booking.db.session import get_db
from studio_booking.schemas.checkout import BookingDraft, CheckoutResponse, CheckoutStatusResponse
from studio_booking.services.checkout_service import create_checkout, get_checkout_status
from studio_booking.services.interfaces import PaymentGateway

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("", response_model=CheckoutResponse)
async def create_checkout_endpoint(
    draft: BookingDraft,
    gateway: PaymentGateway = Depends(gateway_dependency),
    db: AsyncSession = Depends(get_db),
):
    """
    Open a hosted payment page for the draft. The booking itself is
    created when the processor reports the payment as completed.
    """
    session = await create_checkout(db, gateway, draft)
    return CheckoutResponse(session_id=session.session_id, url=session.redirect_url)


@router.get("", response_model=CheckoutStatusResponse)
async def checkout_status_endpoint(
    session_id: str = Query(..., min_length=1),
    gateway: PaymentGateway = Depends(gateway_dependency),
):
    return await get_checkout_status(gateway, session_id)
