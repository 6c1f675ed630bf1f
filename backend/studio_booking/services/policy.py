"""
Staff roles and permissions.

The reconciliation core never consults this module; only the admin-facing
HTTP routes gate on it.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from studio_booking.models.user import User

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "super_admin": frozenset({
        "manage_users",
        "manage_packages",
        "view_packages",
        "manage_time_slots",
        "manage_bookings",
        "view_bookings",
        "view_payments",
        "refund_payments",
        "view_customers",
    }),
    "admin": frozenset({
        "manage_packages",
        "view_packages",
        "manage_time_slots",
        "manage_bookings",
        "view_bookings",
        "view_payments",
        "refund_payments",
        "view_customers",
    }),
    "manager": frozenset({
        "view_packages",
        "manage_bookings",
        "view_bookings",
        "view_payments",
        "view_customers",
    }),
    "viewer": frozenset({
        "view_packages",
        "view_bookings",
        "view_payments",
    }),
}


async def get_role(db: AsyncSession, user_id: int) -> Optional[str]:
    """
    Role of an active staff user, or None. Unknown or deactivated users
    have no role; there is no default.
    """
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user.role


def has_permission(role: Optional[str], permission: str) -> bool:
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS.get(role, frozenset())
