"""
Availability engine: derives bookable slots for a date from the weekly
templates and the bookings already holding capacity.

Rules:
  - Weekdays are numbered 0 = Sunday ... 6 = Saturday
  - A template emits time points start, start+d, start+2d, ... and keeps a
    point only while point + d <= end_time, so no slot runs past the end
    and no short trailing slot is produced
  - Durations are converted to whole minutes, so a 1.5 h step rolls over
    the minute field correctly (09:00, 10:30, 12:00)
  - Only pending and confirmed bookings hold capacity; cancelled and
    refunded ones free the slot
  - Overlapping templates on one weekday each emit their own slots; the
    engine does not merge them

The engine is read-only and does not reject past dates; the HTTP layer
filters those.
"""

from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import pytz
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.schemas.slot_template import SlotView
from studio_booking.services.cache_service import (
    get_cached_availability,
    set_cached_availability,
)
from studio_booking.services.slot_template_service import templates_for_weekday

logger = get_logger(__name__)


def studio_today() -> date:
    return datetime.now(pytz.timezone(get_settings().STUDIO_TIMEZONE)).date()


def day_of_week(day: date) -> int:
    """Sunday-based weekday index (date.weekday() is Monday-based)."""
    return (day.weekday() + 1) % 7


def _to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def generate_slot_times(start_time: time, end_time: time, duration_hours) -> list[time]:
    step = int((Decimal(str(duration_hours)) * 60).to_integral_value(rounding=ROUND_HALF_UP))
    if step <= 0:
        return []

    end = _to_minutes(end_time)
    current = _to_minutes(start_time)
    times = []
    while current + step <= end:
        times.append(time(current // 60, current % 60))
        current += step
    return times


async def count_active_bookings(db: AsyncSession, day: date) -> dict[time, int]:
    """Map booking_time -> number of pending/confirmed bookings on `day`."""
    result = await db.execute(
        select(Booking.booking_time, func.count(Booking.id))
        .where(
            Booking.booking_date == day,
            Booking.status.in_(BookingStatus.ACTIVE),
        )
        .group_by(Booking.booking_time)
    )
    return {booking_time.replace(second=0, microsecond=0): count for booking_time, count in result.all()}


async def get_available_slots(db: AsyncSession, day: date) -> list[SlotView]:
    templates = await templates_for_weekday(db, day_of_week(day))
    if not templates:
        return []

    counts = await count_active_bookings(db, day)

    slots = []
    for template in templates:
        for slot_time in generate_slot_times(
            template.start_time, template.end_time, template.duration_hours
        ):
            current = counts.get(slot_time, 0)
            slots.append(
                SlotView(
                    time=slot_time,
                    template_id=template.id,
                    max_capacity=template.max_capacity,
                    current_bookings=current,
                    available=current < template.max_capacity,
                )
            )

    slots.sort(key=lambda s: (s.time, s.template_id))
    return slots


async def get_availability(db: AsyncSession, day: date) -> list[SlotView]:
    """Read-through cached variant of get_available_slots."""
    cached = await get_cached_availability(day)
    if cached is not None:
        return [SlotView.model_validate(slot) for slot in cached]

    slots = await get_available_slots(db, day)
    await set_cached_availability(day, [slot.model_dump(mode="json") for slot in slots])
    return slots


async def find_slot(db: AsyncSession, day: date, at: time) -> Optional[SlotView]:
    """
    The generated slot at exactly `at` on `day`, or None if no template
    produces that time. With overlapping templates the one with the most
    remaining room wins.
    """
    at = at.replace(second=0, microsecond=0)
    matches = [slot for slot in await get_available_slots(db, day) if slot.time == at]
    if not matches:
        return None
    return max(matches, key=lambda s: s.max_capacity - s.current_bookings)
