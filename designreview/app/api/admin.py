"""Operator endpoints for the rate limiter.

Access is gated by the admin token only; these endpoints apply no
authorization of their own beyond it.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from designreview.app.middleware.auth import require_admin
from designreview.app.services.rate_limiter import RateLimitService, get_rate_limit_service

router = APIRouter(prefix="/admin/rate-limits", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("")
async def rate_limit_stats(
    request: Request,
    service: RateLimitService = Depends(get_rate_limit_service),
) -> Dict[str, Any]:
    return {
        "rate_limiter": service.get_stats(),
        "dispatch_queue": request.app.state.analysis.dispatch_queue.get_stats(),
    }


@router.post("/sweep")
async def sweep_rate_limits(
    service: RateLimitService = Depends(get_rate_limit_service),
) -> Dict[str, int]:
    """Drop idle counters now instead of waiting for the next sweep."""
    return {"removed": service.sweep_now()}


@router.delete("/{identifier:path}")
async def reset_rate_limits(
    identifier: str,
    service: RateLimitService = Depends(get_rate_limit_service),
) -> Dict[str, Any]:
    """Clear every counter for an identity, e.g. ``user:42`` or ``ip:10.0.0.1``."""
    return {"identifier": identifier, "removed": service.reset_identity(identifier)}
