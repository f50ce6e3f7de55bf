"""Rate limiting data models.

This module contains dataclasses for rate limit policies, per-key state
and decision results.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional


@dataclass(frozen=True)
class RateLimitPolicy:
    """One throttling rule: at most ``max_requests`` per sliding ``window_ms``."""
    window_ms: int
    max_requests: int
    message: str = "Rate limit exceeded"

    def __post_init__(self) -> None:
        if self.window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {self.window_ms}")
        if self.max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {self.max_requests}")


@dataclass
class RateLimitResult:
    """Result of a rate limit check.

    ``reset`` is the end of the nominal window as epoch milliseconds.
    ``retry_after`` is whole seconds and only set on denial.
    """
    success: bool
    limit: int
    remaining: int
    reset: int
    retry_after: Optional[int] = None


@dataclass
class RequestLog:
    """Sliding window state for a single key."""
    reset_time: float
    window_ms: int
    requests: Deque[float] = field(default_factory=deque)


@dataclass(frozen=True)
class PolicyViolation:
    """First policy that denied a composed check."""
    name: str
    policy: RateLimitPolicy
    result: RateLimitResult
