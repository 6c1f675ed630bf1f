"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from studio_booking.api.routes import (
    auth, users, packages, time_slots, checkout, bookings, ledger, webhooks,
)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(packages.router)
api_router.include_router(time_slots.router)
api_router.include_router(checkout.router)
api_router.include_router(bookings.router)
api_router.include_router(ledger.router)
api_router.include_router(webhooks.router)
