"""Middleware package for the design review service."""

from designreview.app.middleware.auth import require_admin, resolve_user_id
from designreview.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "require_admin",
    "resolve_user_id",
    "RequestIdMiddleware",
    "get_request_id",
]
