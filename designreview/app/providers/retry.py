"""Retry mechanism with backoff for AI provider calls.

Failures are sorted into three groups:

- quota/throttling signals: exponential backoff, capped at ``max_delay``
- content-safety and credential errors: raised at once, never retried
- anything else: treated as transient, linear backoff

When every attempt failed on a quota signal the caller gets an
``AIQuotaExhaustedError`` so it can tell the user to wait or upgrade.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from designreview.app.core.logging import get_logger
from designreview.app.exceptions import (
    AICredentialError,
    AIQuotaExhaustedError,
    AIRateLimitError,
    ContentSafetyError,
)

logger = get_logger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

RATE_LIMIT_MARKERS = ("429", "quota", "rate limit", "resource_exhausted")


@dataclass
class RetryPolicy:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first one (default: 3)
        base_delay: Delay unit in seconds (default: 1.0)
        max_delay: Cap for quota backoff in seconds (default: 60.0)
        exponential_base: Base for quota backoff (default: 2.0)

    Example:
        >>> policy = RetryPolicy()
        >>> policy.calculate_delay(attempt=2, rate_limited=True)  # 4.0
        >>> policy.calculate_delay(attempt=2, rate_limited=False)  # 2.0
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def calculate_delay(self, attempt: int, rate_limited: bool) -> float:
        """Calculate the delay after a failed attempt.

        Quota signals: min(max_delay, base_delay * exponential_base ^ attempt).
        Other errors: base_delay * attempt.

        Args:
            attempt: The attempt that just failed (1-indexed)
            rate_limited: Whether the failure was a quota signal
        """
        if rate_limited:
            return min(self.max_delay, self.base_delay * (self.exponential_base ** attempt))
        return self.base_delay * attempt


def is_rate_limit_error(exception: BaseException) -> bool:
    """Check if an exception is a provider quota or throttling signal."""
    if isinstance(exception, AIRateLimitError):
        return True
    message = str(exception).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def is_retryable(exception: BaseException) -> bool:
    """Content-safety rejections and credential errors are final."""
    return not isinstance(exception, (ContentSafetyError, AICredentialError))


async def retry_call(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    operation: str = "ai_call",
) -> T:
    """Await ``func()`` up to ``policy.max_attempts`` times.

    Args:
        func: Zero-argument callable returning an awaitable
        policy: Retry configuration. Uses defaults if not provided.
        operation: Name used in log messages

    Raises:
        AIQuotaExhaustedError: If the final attempt failed on a quota signal
        Exception: The last error otherwise
    """
    retry_policy = policy or RetryPolicy()

    for attempt in range(1, retry_policy.max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            if not is_retryable(e):
                logger.debug(
                    f"Non-retryable exception in {operation}: {type(e).__name__}: {e}"
                )
                raise

            rate_limited = is_rate_limit_error(e)

            if attempt >= retry_policy.max_attempts:
                logger.warning(
                    f"All {retry_policy.max_attempts} attempts failed for {operation}: "
                    f"{type(e).__name__}: {e}"
                )
                if rate_limited:
                    raise AIQuotaExhaustedError() from e
                raise

            delay = retry_policy.calculate_delay(attempt, rate_limited)
            reason = "Rate limit hit" if rate_limited else f"{type(e).__name__}: {e}"
            logger.warning(
                f"Attempt {attempt}/{retry_policy.max_attempts} for {operation} failed "
                f"({reason}). Waiting {delay:.2f}s before retrying..."
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover


def with_retry(policy: Optional[RetryPolicy] = None) -> Callable[[F], F]:
    """Decorator form of ``retry_call`` for async functions.

    Example:
        >>> @with_retry(policy=RetryPolicy(max_attempts=3))
        ... async def analyze(self, image, mime_type):
        ...     return await self._generate(image, mime_type)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await retry_call(
                lambda: func(*args, **kwargs),
                policy,
                operation=func.__name__,
            )

        return wrapper  # type: ignore

    return decorator
