"""API routes."""

from .auth import router as auth_router
from .bids import router as bids_router
from .gigs import router as gigs_router
from .maintenance import router as maintenance_router
from .notifications import router as notifications_router

__all__ = ["auth_router", "gigs_router", "bids_router", "maintenance_router", "notifications_router"]
