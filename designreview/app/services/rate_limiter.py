"""Rate limit service: the single owner of the limiter store.

The service is built once by the application factory, handed to request
handlers through ``get_rate_limit_service`` and started/stopped by the
application lifespan, which runs the periodic sweep of idle keys.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from fastapi import Request

from designreview.app.core.logging import get_logger
from designreview.app.middleware.rate_limit.models import (
    PolicyViolation,
    RateLimitPolicy,
    RateLimitResult,
)
from designreview.app.middleware.rate_limit.store import RateLimitStore

logger = get_logger(__name__)

NamedPolicy = Tuple[str, RateLimitPolicy]


class RateLimitService:
    """Per-identity sliding window limiter with a background sweep.

    Usage:
        service = RateLimitService(presets=build_rate_limit_presets(settings))
        await service.start()

        violation = service.check_multiple_rate_limits(
            "user:42",
            [("minute", service.presets["ai_analysis"]),
             ("daily", service.presets["ai_daily"])],
        )

        await service.stop()
    """

    DEFAULT_CLEANUP_INTERVAL = 300.0

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        presets: Optional[Dict[str, RateLimitPolicy]] = None,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        enabled: bool = True,
    ):
        """Initialize the service.

        Args:
            store: Backing store (a fresh in-memory store by default)
            presets: Named policies available to request handlers
            cleanup_interval: Seconds between sweeps of idle keys
            enabled: When False, HTTP adapters skip rate limiting entirely
        """
        self.store = store if store is not None else RateLimitStore()
        self.presets: Dict[str, RateLimitPolicy] = dict(presets or {})
        self.enabled = enabled
        self._cleanup_interval = cleanup_interval
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        # Every policy name a counter has been keyed under
        self._policy_names: Set[str] = set(self.presets)

    def get_policy(self, name: str) -> RateLimitPolicy:
        """Look up a preset policy.

        Raises:
            KeyError: If no preset has that name
        """
        try:
            return self.presets[name]
        except KeyError:
            raise KeyError(f"Unknown rate limit preset: {name}") from None

    def check_rate_limit(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Check ``policy`` for ``identifier`` and record the request if allowed."""
        return self.store.check(identifier, policy)

    def check_named(self, identifier: str, name: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Check one named policy under its own ``identifier:name`` counter."""
        self._policy_names.add(name)
        return self.store.check(f"{identifier}:{name}", policy)

    def check_multiple_rate_limits(
        self,
        identifier: str,
        policies: Iterable[NamedPolicy],
    ) -> Optional[PolicyViolation]:
        """Evaluate named policies in order and return the first violation.

        Evaluation stops at the first denial. Policies checked before it have
        already recorded this request against their own counters.

        Returns:
            The first violated policy, or None if every policy allowed the request
        """
        for name, policy in policies:
            result = self.check_named(identifier, name, policy)
            if not result.success:
                return PolicyViolation(name=name, policy=policy, result=result)
        return None

    def reset_rate_limit(self, key: str) -> None:
        """Discard a single key's counter."""
        self.store.reset(key)

    def reset_identity(self, identifier: str) -> int:
        """Discard every counter belonging to ``identifier``.

        Covers the bare key and the ``identifier:<name>`` key of every policy
        name seen so far. Keys are matched exactly: resetting ``user:42`` leaves
        ``user:42:x:minute`` (user id ``42:x``) alone.

        Returns:
            Number of keys removed
        """
        candidates = [identifier] + [f"{identifier}:{name}" for name in sorted(self._policy_names)]
        removed = 0
        for key in candidates:
            if key in self.store:
                self.store.reset(key)
                removed += 1
        logger.info(
            f"Reset {removed} rate limit counters for {identifier}",
            extra={"identity": identifier},
        )
        return removed

    def sweep_now(self) -> int:
        """Run one sweep immediately."""
        return self.store.sweep()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "tracked_keys": len(self.store),
            "sweeper_running": self.is_running,
            "cleanup_interval_seconds": self._cleanup_interval,
            "presets": {
                name: {"window_ms": p.window_ms, "max_requests": p.max_requests}
                for name, p in self.presets.items()
            },
        }

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._task is not None:
            logger.debug("Rate limit sweeper already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_sweeps())
        logger.info(f"Started rate limit sweeper (interval: {self._cleanup_interval}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if self._task is None:
            return

        self._stop_event.set()

        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Rate limit sweeper did not stop gracefully, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("Stopped rate limit sweeper")

    async def _run_sweeps(self) -> None:
        """Background task that sweeps idle keys until stopped."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._cleanup_interval
                )
            except asyncio.TimeoutError:
                # Interval elapsed
                pass
            else:
                break

            try:
                self.store.sweep()
            except Exception as e:
                logger.error(f"Error during rate limit sweep: {e}")


def get_rate_limit_service(request: Request) -> RateLimitService:
    """FastAPI dependency returning the application's rate limit service."""
    return request.app.state.rate_limiter


def named_policies(service: RateLimitService, rules: Sequence[Tuple[str, str]]) -> List[NamedPolicy]:
    """Resolve ``(name, preset)`` rules into ``(name, policy)`` pairs."""
    return [(name, service.get_policy(preset)) for name, preset in rules]
