"""API endpoints package for the design review service."""

from designreview.app.api.admin import router as admin_router
from designreview.app.api.analysis import router as analysis_router

__all__ = [
    "admin_router",
    "analysis_router",
]
