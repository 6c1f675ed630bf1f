"""
Staff authentication and user management.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.config import get_settings
from studio_booking.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from studio_booking.core.logging import get_logger
from studio_booking.core.security import create_access_token, hash_password, verify_password
from studio_booking.models.user import User
from studio_booking.schemas.user import UserCreate, UserLogin, UserUpdate

logger = get_logger(__name__)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Create a staff user with a hashed password.
    Raises ConflictError if the email is already registered.
    """
    if await get_user_by_email(db, user_data.email):
        logger.warning("user_create_failed", reason="email_exists", email=user_data.email)
        raise ConflictError("Email already registered")

    user = User(
        email=user_data.email.strip().lower(),
        full_name=user_data.full_name,
        hashed_password=hash_password(user_data.password),
        role=user_data.role,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_created", user_id=user.id, email=user.email, role=user.role)
    return user


async def update_user(
    db: AsyncSession, user_id: int, data: UserUpdate, acting_user_id: int
) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    changes = data.model_dump(exclude_unset=True)
    if user_id == acting_user_id and (
        changes.get("is_active") is False or changes.get("role", user.role) != user.role
    ):
        # Locking yourself out leaves nobody to undo it
        raise PermissionDeniedError("You cannot change your own role or deactivate yourself")

    for field, value in changes.items():
        setattr(user, field, value)
    await db.flush()
    await db.refresh(user)

    logger.info("user_updated", user_id=user.id, fields=sorted(changes), by=acting_user_id)
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate a staff user and return a JWT access token.
    Raises AuthenticationError if credentials are invalid.
    """
    user = await get_user_by_email(db, login_data.email)

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")

    token = create_access_token(data={"sub": str(user.id)})
    logger.info("user_logged_in", user_id=user.id)
    return token


async def ensure_bootstrap_admin(db: AsyncSession) -> Optional[User]:
    """
    Create the configured super_admin on first start so the dashboard is
    reachable. No-op when unconfigured or when the account already exists.
    """
    settings = get_settings()
    if not settings.BOOTSTRAP_ADMIN_EMAIL or not settings.BOOTSTRAP_ADMIN_PASSWORD:
        return None

    existing = await get_user_by_email(db, settings.BOOTSTRAP_ADMIN_EMAIL)
    if existing:
        return existing

    user = await create_user(
        db,
        UserCreate(
            email=settings.BOOTSTRAP_ADMIN_EMAIL,
            full_name="Administrator",
            password=settings.BOOTSTRAP_ADMIN_PASSWORD,
            role="super_admin",
        ),
    )
    logger.info("bootstrap_admin_created", user_id=user.id)
    return user
