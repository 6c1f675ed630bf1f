"""
Package catalog endpoints. Listing active packages is public.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import require_permission
from studio_booking.db.session import get_db
from studio_booking.schemas.package import PackageCreate, PackageResponse, PackageUpdate
from studio_booking.services.package_service import (
    create_package,
    get_package,
    list_packages,
    update_package,
)

router = APIRouter(prefix="/packages", tags=["Packages"])


@router.get("/", response_model=list[PackageResponse])
async def list_packages_endpoint(db: AsyncSession = Depends(get_db)):
    return await list_packages(db, active_only=True)


@router.get("/all", response_model=list[PackageResponse])
async def list_all_packages_endpoint(
    _: int = Depends(require_permission("view_packages")),
    db: AsyncSession = Depends(get_db),
):
    """Includes deactivated packages."""
    return await list_packages(db, active_only=False)


@router.get("/{package_id}", response_model=PackageResponse)
async def get_package_endpoint(package_id: str, db: AsyncSession = Depends(get_db)):
    return await get_package(db, package_id)


@router.post("/", response_model=PackageResponse, status_code=status.HTTP_201_CREATED)
async def create_package_endpoint(
    data: PackageCreate,
    _: int = Depends(require_permission("manage_packages")),
    db: AsyncSession = Depends(get_db),
):
    return await create_package(db, data)


@router.patch("/{package_id}", response_model=PackageResponse)
async def update_package_endpoint(
    package_id: str,
    data: PackageUpdate,
    _: int = Depends(require_permission("manage_packages")),
    db: AsyncSession = Depends(get_db),
):
    return await update_package(db, package_id, data)
