"""Per-identity sliding window rate limiting.

The store, models, presets and identity helpers live here; the HTTP
adapter (middleware and route dependency) lives in ``adapter`` and the
lifecycle-owning service in ``designreview.app.services.rate_limiter``.
"""

from designreview.app.middleware.rate_limit.identity import (
    ANONYMOUS_IDENTIFIER,
    get_client_ip,
    get_rate_limit_identifier,
    resolve_identifier,
)
from designreview.app.middleware.rate_limit.models import (
    PolicyViolation,
    RateLimitPolicy,
    RateLimitResult,
    RequestLog,
)
from designreview.app.middleware.rate_limit.presets import build_rate_limit_presets
from designreview.app.middleware.rate_limit.store import RateLimitStore

__all__ = [
    # Models
    "RateLimitPolicy",
    "RateLimitResult",
    "RequestLog",
    "PolicyViolation",
    # Store
    "RateLimitStore",
    "build_rate_limit_presets",
    # Identity
    "ANONYMOUS_IDENTIFIER",
    "get_client_ip",
    "get_rate_limit_identifier",
    "resolve_identifier",
]
