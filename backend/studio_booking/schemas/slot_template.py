"""
Pydantic schemas for slot templates and derived slot availability.
"""

import datetime as dt
from datetime import datetime, time
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class SlotTemplateCreate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: time
    end_time: time
    duration_hours: Decimal = Field(default=Decimal("1.0"), gt=0, le=24)
    max_capacity: int = Field(default=1, ge=1, le=1000)
    package_id: Optional[str] = None
    is_active: bool = True

    @model_validator(mode="after")
    def check_window(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class SlotTemplateUpdate(BaseModel):
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    duration_hours: Optional[Decimal] = Field(None, gt=0, le=24)
    max_capacity: Optional[int] = Field(None, ge=1, le=1000)
    is_active: Optional[bool] = None


class SlotTemplateResponse(BaseModel):
    id: int
    day_of_week: int
    start_time: time
    end_time: time
    duration_hours: Decimal
    max_capacity: int
    package_id: Optional[str]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SlotView(BaseModel):
    """One bookable time point on a concrete date."""

    time: dt.time
    template_id: int
    max_capacity: int
    current_bookings: int
    available: bool
