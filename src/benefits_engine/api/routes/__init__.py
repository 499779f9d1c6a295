"""API routes."""

from benefits_engine.api.routes.approvals import router as approvals_router
from benefits_engine.api.routes.bookings import router as bookings_router
from benefits_engine.api.routes.health import router as health_router
from benefits_engine.api.routes.loans import router as loans_router
from benefits_engine.api.routes.notifications import router as notifications_router

__all__ = [
    "approvals_router",
    "bookings_router",
    "health_router",
    "loans_router",
    "notifications_router",
]
