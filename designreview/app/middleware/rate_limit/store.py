"""In-memory sliding window store for per-identity rate limiting.

Each key keeps the timestamps of its accepted requests. A check prunes the
timestamps that fell out of the trailing window, counts the rest and either
records the new request or denies it. The store never performs I/O and never
suspends, so one ``threading.Lock`` makes every check atomic whether it is
called from the event loop or from a threadpool worker.
"""

import math
import threading
import time
from collections import deque
from typing import Callable, Dict, List, Optional

from designreview.app.core.logging import get_logger
from designreview.app.middleware.rate_limit.models import (
    RateLimitPolicy,
    RateLimitResult,
    RequestLog,
)

logger = get_logger(__name__)

Clock = Callable[[], float]


def _now_ms() -> float:
    return time.time() * 1000


class RateLimitStore:
    """Keyed registry of request logs.

    Memory stays bounded by the keys active within their last window:
    pruning keeps each log at most ``max_requests`` long, and ``sweep``
    drops logs that have gone idle.

    Args:
        clock: Returns the current time as epoch milliseconds.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or _now_ms
        self._logs: Dict[str, RequestLog] = {}
        self._lock = threading.Lock()

    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Record a request for ``key`` if ``policy`` still has capacity.

        Args:
            key: Non-empty identity key
            policy: Window size and request cap to enforce

        Returns:
            RateLimitResult describing the decision

        Raises:
            ValueError: If key is empty
        """
        if not key:
            raise ValueError("Rate limit key must be a non-empty string")

        with self._lock:
            now = self._clock()
            log = self._logs.get(key)

            if log is None:
                log = RequestLog(reset_time=now + policy.window_ms, window_ms=policy.window_ms)
                self._logs[key] = log
            elif log.reset_time <= now:
                # New nominal window. Old timestamps are left to the prune below.
                log.reset_time = now + policy.window_ms
            log.window_ms = policy.window_ms

            window_start = now - policy.window_ms
            requests = log.requests
            while requests and requests[0] <= window_start:
                requests.popleft()

            current_count = len(requests)
            reset = int(log.reset_time)

            if current_count >= policy.max_requests:
                oldest_request = requests[0]
                retry_after = math.ceil((oldest_request + policy.window_ms - now) / 1000)
                return RateLimitResult(
                    success=False,
                    limit=policy.max_requests,
                    remaining=0,
                    reset=reset,
                    retry_after=retry_after,
                )

            requests.append(now)
            return RateLimitResult(
                success=True,
                limit=policy.max_requests,
                remaining=policy.max_requests - current_count - 1,
                reset=reset,
            )

    def reset(self, key: str) -> None:
        """Discard the log for ``key``; the next check starts fresh."""
        with self._lock:
            self._logs.pop(key, None)

    def sweep(self) -> int:
        """Drop logs whose nominal window has ended with no activity since.

        A log is only dropped once its newest request has also aged out of
        the window, so long windows never lose requests that still count.

        Returns:
            Number of keys removed
        """
        with self._lock:
            now = self._clock()
            stale = [
                key
                for key, log in self._logs.items()
                if log.reset_time < now
                and (not log.requests or log.requests[-1] <= now - log.window_ms)
            ]
            for key in stale:
                del self._logs[key]

        if stale:
            logger.debug(f"Rate limit sweep removed {len(stale)} idle keys")
        return len(stale)

    def keys(self) -> List[str]:
        """Snapshot of the tracked keys."""
        with self._lock:
            return list(self._logs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._logs)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._logs
