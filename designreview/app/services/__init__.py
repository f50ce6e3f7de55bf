"""Services package for the design review service.

This package provides:
- Per-identity rate limiting with a background sweep
- The paced dispatch queue for outbound AI calls
- Design analysis on top of both
"""

from designreview.app.services.analysis import AnalysisService
from designreview.app.services.dispatch_queue import DispatchQueue
from designreview.app.services.rate_limiter import (
    RateLimitService,
    get_rate_limit_service,
)

__all__ = [
    "AnalysisService",
    "DispatchQueue",
    "RateLimitService",
    "get_rate_limit_service",
]
