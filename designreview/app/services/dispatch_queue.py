"""Concurrency-capped, paced dispatch queue for outbound AI calls.

This governs calls the service itself makes to the AI provider,
independent of which caller triggered them:

- at most ``max_concurrent`` tasks run at once
- consecutive task starts are at least ``min_interval`` seconds apart
- tasks start in submission order (FIFO)

Usage:
    queue = DispatchQueue(max_concurrent=2, min_interval=2.0)
    feedback = await queue.execute(lambda: provider.analyze_image(data, "image/png"))
"""

import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Set, Tuple, TypeVar

from designreview.app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Task = Callable[[], Awaitable[Any]]


class DispatchQueue:
    """FIFO queue bounding concurrency and start-to-start spacing.

    A caller that cancels ``execute`` before its task started removes the
    task from the queue. A task that already started runs to completion.
    """

    DEFAULT_MAX_CONCURRENT = 2
    DEFAULT_MIN_INTERVAL = 2.0

    def __init__(
        self,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the dispatch queue.

        Args:
            max_concurrent: Maximum tasks in flight at once
            min_interval: Minimum seconds between consecutive task starts
            clock: Monotonic clock in seconds
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")

        self.max_concurrent = max_concurrent
        self.min_interval = min_interval
        self._clock = clock

        self._queue: Deque[Tuple[Task, asyncio.Future]] = deque()
        self._running = 0
        self._last_start: Optional[float] = None
        self._pace_lock: Optional[asyncio.Lock] = None
        self._runners: Set[asyncio.Task] = set()
        self._closed = False

        # Counters for monitoring
        self._total_started = 0
        self._total_failed = 0
        self._total_cancelled = 0

    async def execute(self, task: Callable[[], Awaitable[T]]) -> T:
        """Queue ``task`` and wait for its result.

        Args:
            task: Zero-argument callable returning an awaitable

        Returns:
            Whatever the task returns

        Raises:
            RuntimeError: If the queue has been shut down
            Exception: Whatever the task raises
        """
        if self._closed:
            raise RuntimeError("Dispatch queue is shut down")

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._queue.append((task, future))
        self._process_queue()
        return await future

    def _process_queue(self) -> None:
        while self._running < self.max_concurrent and self._queue:
            task, future = self._queue.popleft()
            if future.done():
                # Cancelled by its caller while still queued
                self._total_cancelled += 1
                continue

            self._running += 1
            runner = asyncio.create_task(self._run(task, future))
            self._runners.add(runner)
            runner.add_done_callback(self._runners.discard)

    async def _run(self, task: Task, future: asyncio.Future) -> None:
        try:
            if self._pace_lock is None:
                self._pace_lock = asyncio.Lock()

            # Spacing is global: one slot waits out the interval at a time
            async with self._pace_lock:
                if self._last_start is not None:
                    wait = self.min_interval - (self._clock() - self._last_start)
                    if wait > 0:
                        await asyncio.sleep(wait)

                if future.done():
                    self._total_cancelled += 1
                    return

                self._last_start = self._clock()
                self._total_started += 1

            try:
                result = await task()
            except Exception as e:
                self._total_failed += 1
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
        finally:
            # Cancellation or another BaseException from the task
            if not future.done():
                future.cancel()
            self._running -= 1
            self._process_queue()

    async def shutdown(self) -> None:
        """Cancel queued tasks and wait for running ones to finish."""
        self._closed = True

        while self._queue:
            _, future = self._queue.popleft()
            if not future.done():
                future.cancel()
                self._total_cancelled += 1

        if self._runners:
            logger.info(f"Waiting for {len(self._runners)} in-flight AI calls")
            await asyncio.gather(*self._runners, return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "active": self._running,
            "queued": len(self._queue),
            "max_concurrent": self.max_concurrent,
            "min_interval_seconds": self.min_interval,
            "total_started": self._total_started,
            "total_failed": self._total_failed,
            "total_cancelled": self._total_cancelled,
        }
