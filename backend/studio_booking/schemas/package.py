"""
Pydantic schemas for the package catalog.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class PackageCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9-]+$")
    name: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    features: list[str] = Field(default_factory=list)
    is_popular: bool = False
    is_active: bool = True


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    features: Optional[list[str]] = None
    is_popular: Optional[bool] = None
    is_active: Optional[bool] = None


class PackageResponse(BaseModel):
    id: str
    name: str
    price: Decimal
    features: list[str]
    is_popular: bool
    is_active: bool
    updated_at: datetime

    model_config = {"from_attributes": True}
