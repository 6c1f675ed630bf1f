"""
Shared route dependencies: collaborators and permission gates.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.core.exceptions import PermissionDeniedError
from studio_booking.core.logging import get_logger
from studio_booking.core.security import get_current_user_id
from studio_booking.db.session import get_db
from studio_booking.services.interfaces import Notifier, PaymentGateway
from studio_booking.services.policy import get_role, has_permission
from studio_booking.services.providers import get_notifier, get_payment_gateway

logger = get_logger(__name__)


def gateway_dependency() -> PaymentGateway:
    return get_payment_gateway()


def notifier_dependency() -> Notifier:
    return get_notifier()


async def current_role(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> str:
    role = await get_role(db, user_id)
    if role is None:
        raise PermissionDeniedError("Account is inactive or has no role")
    return role


def require_permission(*permissions: str):
    """Dependency that passes only if the caller's role holds every permission listed."""

    async def checker(
        user_id: int = Depends(get_current_user_id),
        role: str = Depends(current_role),
    ) -> int:
        missing = [p for p in permissions if not has_permission(role, p)]
        if missing:
            logger.warning("permission_denied", user_id=user_id, role=role, missing=missing)
            raise PermissionDeniedError(f"Missing permission: {', '.join(missing)}")
        return user_id

    return checker
