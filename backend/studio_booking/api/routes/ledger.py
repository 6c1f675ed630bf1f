"""
Payment journal and customer directory views for the dashboard.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import require_permission
from studio_booking.db.session import get_db
from studio_booking.schemas.booking import CustomerListResponse, PaymentListResponse
from studio_booking.schemas.payment import CustomerResponse, PaymentResponse
from studio_booking.services.booking_service import list_customers, list_payments

router = APIRouter(tags=["Ledger"])


@router.get("/payments", response_model=PaymentListResponse)
async def list_payments_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    _: int = Depends(require_permission("view_payments")),
    db: AsyncSession = Depends(get_db),
):
    payments, total = await list_payments(db, page, page_size, status)
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    _: int = Depends(require_permission("view_customers")),
    db: AsyncSession = Depends(get_db),
):
    customers, total = await list_customers(db, page, page_size)
    return CustomerListResponse(
        customers=[CustomerResponse.model_validate(c) for c in customers],
        total=total,
        page=page,
        page_size=page_size,
    )
