"""Middleware and request dependencies."""

from redeemer.app.middleware.auth import get_admin_token, require_admin
from redeemer.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "get_admin_token",
    "require_admin",
    "RequestIdMiddleware",
    "get_request_id",
]
