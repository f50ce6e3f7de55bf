"""Custom exceptions for the design review service."""

from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from designreview.app.middleware.rate_limit.models import (
        RateLimitPolicy,
        RateLimitResult,
    )


class ReviewServiceError(Exception):
    """Base class for service exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code and error code for consistent HTTP
    response handling.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = "Service error"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.error_code, "message": self.message}


class RateLimitExceededError(ReviewServiceError):
    """Raised at the HTTP boundary when a rate limit policy denies a request.

    Maps to HTTP 429 Too Many Requests. The body mirrors the limiter
    decision so clients can schedule their retry.
    """
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        limit_type: str,
        policy: "RateLimitPolicy",
        result: "RateLimitResult",
    ):
        self.limit_type = limit_type
        self.policy = policy
        self.result = result
        super().__init__(policy.message or "Rate limit exceeded")

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "limitType": self.limit_type,
            "limit": self.result.limit,
            "remaining": self.result.remaining,
            "reset": self.result.reset,
            "retryAfter": self.result.retry_after,
        }


class AIProviderError(ReviewServiceError):
    """Generic failure talking to the AI provider.

    Treated as transient: the retry wrapper retries it with linear backoff.
    Maps to HTTP 502 Bad Gateway.
    """
    status_code = 502
    error_code = "ai_provider_error"

    def __init__(self, message: str = "Failed to analyze image", provider: str = "gemini"):
        self.provider = provider
        super().__init__(message)


class AIRateLimitError(AIProviderError):
    """Provider signalled quota exhaustion or throttling (HTTP 429)."""
    status_code = 429
    error_code = "ai_rate_limited"


class AIQuotaExhaustedError(AIProviderError):
    """All attempts failed on a provider quota signal.

    The message tells the user what to do next (wait or upgrade the plan).
    """
    status_code = 429
    error_code = "ai_quota_exhausted"

    DEFAULT_MESSAGE = (
        "AI provider rate limit exceeded. Please wait a few minutes before "
        "uploading more images, or consider upgrading your API plan for "
        "higher limits."
    )

    def __init__(self, message: str = DEFAULT_MESSAGE, provider: str = "gemini"):
        super().__init__(message, provider=provider)


class ContentSafetyError(AIProviderError):
    """Image rejected by the provider's safety filters. Never retried."""
    status_code = 422
    error_code = "content_flagged"

    def __init__(
        self,
        message: str = "Image content flagged by safety filters. Please try a different image.",
        provider: str = "gemini",
    ):
        super().__init__(message, provider=provider)


class AICredentialError(AIProviderError):
    """API key missing or rejected. Never retried.

    Maps to HTTP 503: the service is misconfigured, not the client.
    """
    status_code = 503
    error_code = "ai_configuration_error"

    def __init__(
        self,
        message: str = "AI provider API key issue. Please check your API key configuration.",
        provider: str = "gemini",
    ):
        super().__init__(message, provider=provider)


class AIResponseFormatError(AIProviderError):
    """The model answered, but not with a valid feedback array."""
    error_code = "ai_invalid_response"
