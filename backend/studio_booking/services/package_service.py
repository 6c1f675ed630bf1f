"""
Package catalog: the priced offerings a booking is made for.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import ConflictError, NotFoundError
from studio_booking.core.logging import get_logger
from studio_booking.models.package import Package
from studio_booking.schemas.package import PackageCreate, PackageUpdate

logger = get_logger(__name__)


async def list_packages(db: AsyncSession, active_only: bool = True) -> list[Package]:
    query = select(Package)
    if active_only:
        query = query.where(Package.is_active.is_(True))
    result = await db.execute(query.order_by(Package.price, Package.id))
    return list(result.scalars().all())


async def get_package(db: AsyncSession, package_id: str) -> Package:
    package = await db.get(Package, package_id)
    if not package:
        raise NotFoundError(f"Package {package_id} not found")
    return package


async def create_package(db: AsyncSession, data: PackageCreate) -> Package:
    if await db.get(Package, data.id):
        raise ConflictError(f"Package {data.id} already exists")

    package = Package(**data.model_dump())
    db.add(package)
    await db.flush()
    await db.refresh(package)

    logger.info("package_created", package_id=package.id, price=str(package.price))
    return package


async def update_package(db: AsyncSession, package_id: str, data: PackageUpdate) -> Package:
    """Price changes apply to new checkouts only; booked prices are never rewritten."""
    package = await get_package(db, package_id)
    changes = data.model_dump(exclude_unset=True)

    for field, value in changes.items():
        setattr(package, field, value)
    await db.flush()
    await db.refresh(package)

    logger.info("package_updated", package_id=package.id, fields=sorted(changes))
    return package
