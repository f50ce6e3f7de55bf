"""HTTP adapter: turns limiter decisions into headers and 429 responses.

Two entry points share the same fail-open handling:

- ``RateLimitMiddleware`` applies the general API cap to every request
  below a path prefix.
- ``enforce_rate_limits`` is a route dependency for endpoint-specific
  policies such as the AI analysis per-minute and daily caps.

Any exception raised while resolving the identity or evaluating a policy is
logged and the request proceeds: a broken limiter must not block traffic.
"""

from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from designreview.app.core.logging import get_log_context, get_logger
from designreview.app.exceptions import RateLimitExceededError
from designreview.app.middleware.rate_limit.identity import resolve_identifier
from designreview.app.middleware.rate_limit.models import RateLimitResult
from designreview.app.middleware.rate_limit.presets import API_GENERAL
from designreview.app.services.rate_limiter import (
    RateLimitService,
    get_rate_limit_service,
    named_policies,
)

logger = get_logger(__name__)


def build_rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    """Create standard rate limit headers for an HTTP response."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }
    if result.retry_after:
        headers["Retry-After"] = str(result.retry_after)
    return headers


def rate_limit_response(exc: RateLimitExceededError) -> JSONResponse:
    """Render a denial as HTTP 429 with body fields mirroring the headers."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(),
        headers=build_rate_limit_headers(exc.result),
    )


def enforce_rate_limits(
    *rules: Tuple[str, str],
    skip_authentication: bool = False,
) -> Callable:
    """Build a route dependency enforcing one or more preset policies.

    Each rule is ``(name, preset)``: ``name`` labels the counter and the
    ``limitType`` reported on denial, ``preset`` selects the policy from the
    service presets. With a single rule the allowed response also carries
    the rate limit headers.

    Example:
        @router.post("/analyze", dependencies=[Depends(
            enforce_rate_limits(("minute", "ai_analysis"), ("daily", "ai_daily"))
        )])

    Raises:
        ValueError: If no rule is given
    """
    if not rules:
        raise ValueError("enforce_rate_limits needs at least one (name, preset) rule")

    async def dependency(request: Request, response: Response) -> Optional[RateLimitResult]:
        identity = None
        try:
            service: RateLimitService = get_rate_limit_service(request)
            if not service.enabled:
                return None

            identity = resolve_identifier(request, skip_authentication=skip_authentication)
            policies = named_policies(service, rules)

            if len(policies) == 1:
                name, policy = policies[0]
                result = service.check_named(identity, name, policy)
                if result.success:
                    response.headers.update(build_rate_limit_headers(result))
                    return result
                violation_name, violation_policy, violation_result = name, policy, result
            else:
                violation = service.check_multiple_rate_limits(identity, policies)
                if violation is None:
                    return None
                violation_name = violation.name
                violation_policy = violation.policy
                violation_result = violation.result
        except Exception:
            logger.exception(
                "Rate limit check failed, allowing request",
                extra=get_log_context(identity=identity, path=request.url.path),
            )
            return None

        logger.info(
            f"Rate limit exceeded: {violation_name}",
            extra=get_log_context(
                identity=identity,
                limit_type=violation_name,
                path=request.url.path,
                retry_after=violation_result.retry_after,
            ),
        )
        raise RateLimitExceededError(violation_name, violation_policy, violation_result)

    return dependency


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware applying one preset policy to every request under a prefix.

    Requests are keyed per identity (user id, then client IP, then the
    anonymous bucket) under their own ``identity:<preset>`` counter.
    """

    def __init__(
        self,
        app,
        preset: str = API_GENERAL,
        path_prefix: str = "/api",
    ):
        super().__init__(app)
        self.preset = preset
        self.path_prefix = path_prefix

    def _applies_to(self, request: Request) -> bool:
        if request.method == "OPTIONS":
            return False
        return request.url.path.startswith(self.path_prefix)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        if not self._applies_to(request):
            return await call_next(request)

        identity = None
        result: Optional[RateLimitResult] = None
        try:
            service: RateLimitService = get_rate_limit_service(request)
            if service.enabled:
                identity = resolve_identifier(request)
                policy = service.get_policy(self.preset)
                result = service.check_named(identity, self.preset, policy)
        except Exception:
            logger.exception(
                "Rate limit middleware error, allowing request",
                extra=get_log_context(identity=identity, path=request.url.path),
            )

        if result is not None and not result.success:
            logger.info(
                f"Rate limit exceeded: {self.preset}",
                extra=get_log_context(
                    identity=identity, limit_type=self.preset, path=request.url.path
                ),
            )
            return rate_limit_response(
                RateLimitExceededError(self.preset, policy, result)
            )

        response = await call_next(request)

        if result is not None:
            for header, value in build_rate_limit_headers(result).items():
                response.headers.setdefault(header, value)

        return response
