"""Identity resolution for rate limit keys.

Keys are prefix-tagged so a numeric user id can never collide with an
IP address, and callers with neither share one anonymous bucket.
"""

from typing import Mapping, Optional

from fastapi import Request

from designreview.app.core.logging import get_logger
from designreview.app.middleware.auth import resolve_user_id

logger = get_logger(__name__)

ANONYMOUS_IDENTIFIER = "anonymous"


def get_rate_limit_identifier(user_id: Optional[str], ip: Optional[str]) -> str:
    """Build the identity key, preferring the user id over the IP address."""
    if user_id:
        return f"user:{user_id}"
    if ip:
        return f"ip:{ip}"
    return ANONYMOUS_IDENTIFIER


def get_client_ip(headers: Mapping[str, str]) -> Optional[str]:
    """Extract the client IP from proxy headers.

    Uses the first entry of X-Forwarded-For, then X-Real-IP.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
        if client_ip:
            return client_ip

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip() or None

    return None


def resolve_identifier(request: Request, skip_authentication: bool = False) -> str:
    """Resolve the rate limit identity for a request.

    Args:
        request: Incoming request
        skip_authentication: Ignore the user id even if present (public endpoints)

    Returns:
        ``user:<id>``, ``ip:<addr>`` or ``anonymous``
    """
    user_id: Optional[str] = None
    if not skip_authentication:
        try:
            user_id = resolve_user_id(request)
        except Exception as e:
            logger.warning(f"User lookup failed in rate limiter: {e}")

    return get_rate_limit_identifier(user_id, get_client_ip(request.headers))
