"""
Staff user management. super_admin only.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.api.deps import require_permission
from studio_booking.db.session import get_db
from studio_booking.schemas.user import UserCreate, UserResponse, UserUpdate
from studio_booking.services.auth_service import create_user, list_users, update_user

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/", response_model=list[UserResponse])
async def list_users_endpoint(
    _: int = Depends(require_permission("manage_users")),
    db: AsyncSession = Depends(get_db),
):
    return await list_users(db)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user_endpoint(
    user_data: UserCreate,
    _: int = Depends(require_permission("manage_users")),
    db: AsyncSession = Depends(get_db),
):
    return await create_user(db, user_data)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user_endpoint(
    user_id: int,
    data: UserUpdate,
    acting_user_id: int = Depends(require_permission("manage_users")),
    db: AsyncSession = Depends(get_db),
):
    return await update_user(db, user_id, data, acting_user_id)
