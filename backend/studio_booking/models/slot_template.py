"""
Recurring weekly availability template.

Concrete slots are never stored; the availability engine expands the
templates matching a date's weekday on demand.
"""

from sqlalchemy import Column, Integer, String, Time, Boolean, Numeric, ForeignKey, Index, CheckConstraint

from studio_booking.db.base import Base, TimestampMixin


class SlotTemplate(Base, TimestampMixin):
    __tablename__ = "slot_templates"

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(String(50), ForeignKey("packages.id"), nullable=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_hours = Column(Numeric(4, 2), nullable=False, default=1)
    max_capacity = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_slot_day_of_week"),
        CheckConstraint("start_time < end_time", name="check_slot_start_before_end"),
        CheckConstraint("duration_hours > 0", name="check_slot_duration_positive"),
        CheckConstraint("max_capacity >= 1", name="check_slot_capacity_positive"),
        # Availability lookups are always "active templates for weekday N"
        Index("ix_slot_templates_day_active", "day_of_week", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<SlotTemplate(id={self.id}, day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time}, cap={self.max_capacity})>"
        )
