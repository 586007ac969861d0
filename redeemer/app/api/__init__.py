"""API endpoints package for the redemption service."""

from redeemer.app.api.admin.router import router as admin_router
from redeemer.app.api.invite import router as invite_router

__all__ = [
    "admin_router",
    "invite_router",
]
