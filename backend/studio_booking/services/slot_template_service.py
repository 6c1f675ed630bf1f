"""
Slot template store: admin CRUD over recurring weekly availability.

Templates are never deleted; deactivating one removes its slots from
availability while keeping existing bookings' template reference valid.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import NotFoundError, ValidationError
from studio_booking.core.logging import get_logger
from studio_booking.models.package import Package
from studio_booking.models.slot_template import SlotTemplate
from studio_booking.schemas.slot_template import SlotTemplateCreate, SlotTemplateUpdate
from studio_booking.services.cache_service import invalidate_all_availability

logger = get_logger(__name__)


async def _check_package(db: AsyncSession, package_id: Optional[str]) -> None:
    if package_id is not None and await db.get(Package, package_id) is None:
        raise ValidationError(f"Package {package_id} does not exist")


async def create_template(db: AsyncSession, data: SlotTemplateCreate) -> SlotTemplate:
    await _check_package(db, data.package_id)

    template = SlotTemplate(**data.model_dump())
    db.add(template)
    await db.flush()
    await db.refresh(template)
    await invalidate_all_availability()

    logger.info(
        "slot_template_created",
        template_id=template.id,
        day_of_week=template.day_of_week,
        start=str(template.start_time),
        end=str(template.end_time),
    )
    return template


async def get_template(db: AsyncSession, template_id: int) -> SlotTemplate:
    template = await db.get(SlotTemplate, template_id)
    if not template:
        raise NotFoundError(f"Time slot {template_id} not found")
    return template


async def update_template(
    db: AsyncSession, template_id: int, data: SlotTemplateUpdate
) -> SlotTemplate:
    template = await get_template(db, template_id)
    changes = data.model_dump(exclude_unset=True)

    start = changes.get("start_time", template.start_time)
    end = changes.get("end_time", template.end_time)
    if start >= end:
        raise ValidationError("start_time must be before end_time")

    for field, value in changes.items():
        setattr(template, field, value)
    await db.flush()
    await db.refresh(template)
    await invalidate_all_availability()

    logger.info("slot_template_updated", template_id=template.id, fields=sorted(changes))
    return template


async def list_templates(db: AsyncSession, active_only: bool = True) -> list[SlotTemplate]:
    query = select(SlotTemplate)
    if active_only:
        query = query.where(SlotTemplate.is_active.is_(True))
    result = await db.execute(
        query.order_by(SlotTemplate.day_of_week, SlotTemplate.start_time, SlotTemplate.id)
    )
    return list(result.scalars().all())


async def templates_for_weekday(db: AsyncSession, day_of_week: int) -> list[SlotTemplate]:
    result = await db.execute(
        select(SlotTemplate)
        .where(
            SlotTemplate.day_of_week == day_of_week,
            SlotTemplate.is_active.is_(True),
        )
        .order_by(SlotTemplate.start_time, SlotTemplate.id)
    )
    return list(result.scalars().all())
