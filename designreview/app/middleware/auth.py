"""Request identity helpers.

Users are authenticated by the upstream identity provider; this module only
reads the user id it forwards, and guards operator endpoints with a static
admin token.
"""

import hmac
import os
from typing import Optional

from fastapi import HTTPException, Request

from designreview.app.core.config import settings

MAX_USER_ID_LENGTH = 256


def get_admin_token() -> str:
    """Return the operator token from ``ADMIN_TOKEN``, read once and memoised.

    Surrounding whitespace, such as a trailing newline from a secret store,
    is stripped.

    Raises:
        ValueError: If ADMIN_TOKEN is unset or blank
    """
    cached = getattr(get_admin_token, "_cached_token", None)
    if cached is not None:
        return cached

    token = (os.getenv("ADMIN_TOKEN") or "").strip()
    if not token:
        raise ValueError("ADMIN_TOKEN is not set; operator endpoints are disabled")
    get_admin_token._cached_token = token
    return token


def get_bearer_token(request: Request) -> Optional[str]:
    """Extract Bearer token from Authorization header."""
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth[len("Bearer "):].strip()


def require_admin(request: Request) -> str:
    """Route dependency guarding the operator endpoints.

    Raises:
        HTTPException: 503 when no admin token is configured, 401 when the
            bearer token is missing or wrong
    """
    try:
        expected = get_admin_token()
    except ValueError:
        raise HTTPException(status_code=503, detail="Admin endpoints are disabled")

    presented = get_bearer_token(request) or ""
    if not hmac.compare_digest(presented.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid or missing admin token")

    return "admin"


def resolve_user_id(request: Request) -> Optional[str]:
    """Return the authenticated user id forwarded by the identity layer.

    ``request.state.user_id`` wins when an in-process auth layer set it;
    otherwise the header named by ``AUTH_USER_HEADER`` is read, if one is
    configured.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return str(user_id)

    if not settings.auth_user_header:
        return None

    header_value = request.headers.get(settings.auth_user_header, "").strip()
    if not header_value:
        return None
    if len(header_value) > MAX_USER_ID_LENGTH:
        raise ValueError("User id header too long")
    return header_value
