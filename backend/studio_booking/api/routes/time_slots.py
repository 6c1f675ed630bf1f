"""
Slot template admin and public availability endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import require_permission
from studio_booking.db.session import get_db
from studio_booking.schemas.slot_template import (
    SlotTemplateCreate,
    SlotTemplateResponse,
    SlotTemplateUpdate,
    SlotView,
)
from studio_booking.services.availability_service import get_availability, studio_today
from studio_booking.services.slot_template_service import (
    create_template,
    list_templates,
    update_template,
)

router = APIRouter(tags=["Time slots"])


@router.get("/time-slots", response_model=list[SlotTemplateResponse])
async def list_templates_endpoint(
    active_only: bool = Query(False),
    _: int = Depends(require_permission("manage_time_slots")),
    db: AsyncSession = Depends(get_db),
):
    return await list_templates(db, active_only=active_only)


@router.post("/time-slots", response_model=SlotTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template_endpoint(
    data: SlotTemplateCreate,
    _: int = Depends(require_permission("manage_time_slots")),
    db: AsyncSession = Depends(get_db),
):
    return await create_template(db, data)


@router.patch("/time-slots/{template_id}", response_model=SlotTemplateResponse)
async def update_template_endpoint(
    template_id: int,
    data: SlotTemplateUpdate,
    _: int = Depends(require_permission("manage_time_slots")),
    db: AsyncSession = Depends(get_db),
):
    return await update_template(db, template_id, data)


@router.get("/availability", response_model=list[SlotView])
async def availability_endpoint(
    day: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """
    Bookable slots for one date. Served from Redis when warm; the cache is
    dropped whenever a booking on that date changes status.
    """
    if day < studio_today():
        return []
    return await get_availability(db, day)
