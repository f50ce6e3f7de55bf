"""Tests for the AI call dispatch queue."""

import asyncio
import time

import pytest

from designreview.app.services.dispatch_queue import DispatchQueue

TOLERANCE = 0.02


class TestDispatchQueueValidation:
    """Tests for constructor validation."""

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            DispatchQueue(max_concurrent=0)

    def test_rejects_negative_interval(self):
        with pytest.raises(ValueError):
            DispatchQueue(min_interval=-1)


class TestDispatchQueueScheduling:
    """Tests for spacing, concurrency and ordering."""

    @pytest.mark.asyncio
    async def test_returns_task_result(self):
        queue = DispatchQueue(max_concurrent=2, min_interval=0)

        async def task():
            return 42

        assert await queue.execute(task) == 42

    @pytest.mark.asyncio
    async def test_start_spacing_and_slot_wait(self):
        """Second start waits the interval; third also waits for a free slot."""
        queue = DispatchQueue(max_concurrent=2, min_interval=0.2)
        starts = {}

        def make_task(name, duration):
            async def task():
                starts[name] = time.monotonic()
                await asyncio.sleep(duration)
                return name

            return task

        results = await asyncio.gather(
            queue.execute(make_task("first", 0.5)),
            queue.execute(make_task("second", 0.5)),
            queue.execute(make_task("third", 0.05)),
        )

        assert results == ["first", "second", "third"]
        assert starts["second"] - starts["first"] >= 0.2 - TOLERANCE
        # First slot frees at ~0.5s
        assert starts["third"] - starts["first"] >= 0.5 - TOLERANCE
        assert starts["third"] - starts["second"] >= 0.2 - TOLERANCE

    @pytest.mark.asyncio
    async def test_never_exceeds_max_concurrent(self):
        queue = DispatchQueue(max_concurrent=2, min_interval=0)
        active = 0
        peak = 0

        async def task():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1

        await asyncio.gather(*(queue.execute(task) for _ in range(6)))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_fifo_order(self):
        queue = DispatchQueue(max_concurrent=1, min_interval=0)
        order = []

        def make_task(i):
            async def task():
                order.append(i)

            return task

        await asyncio.gather(*(queue.execute(make_task(i)) for i in range(5)))

        assert order == [0, 1, 2, 3, 4]


class TestDispatchQueueFailures:
    """Tests for errors, cancellation and shutdown."""

    @pytest.mark.asyncio
    async def test_task_error_propagates(self):
        queue = DispatchQueue(max_concurrent=1, min_interval=0)

        async def failing():
            raise ValueError("provider exploded")

        with pytest.raises(ValueError, match="provider exploded"):
            await queue.execute(failing)

        # Slot is released after a failure
        async def ok():
            return "ok"

        assert await queue.execute(ok) == "ok"
        assert queue.get_stats()["total_failed"] == 1

    @pytest.mark.asyncio
    async def test_cancelled_queued_task_never_runs(self):
        queue = DispatchQueue(max_concurrent=1, min_interval=0)
        release = asyncio.Event()
        ran = []

        async def blocker():
            await release.wait()
            ran.append("first")

        async def second():
            ran.append("second")

        async def third():
            ran.append("third")

        first_call = asyncio.create_task(queue.execute(blocker))
        await asyncio.sleep(0)
        second_call = asyncio.create_task(queue.execute(second))
        third_call = asyncio.create_task(queue.execute(third))
        await asyncio.sleep(0)

        second_call.cancel()
        release.set()
        await first_call
        await third_call

        with pytest.raises(asyncio.CancelledError):
            await second_call
        assert ran == ["first", "third"]
        assert queue.get_stats()["total_cancelled"] == 1

    @pytest.mark.asyncio
    async def test_shutdown_cancels_queued_and_waits_for_running(self):
        queue = DispatchQueue(max_concurrent=1, min_interval=0)
        release = asyncio.Event()

        async def blocker():
            await release.wait()
            return "done"

        async def queued():
            return "never"

        first_call = asyncio.create_task(queue.execute(blocker))
        await asyncio.sleep(0)
        second_call = asyncio.create_task(queue.execute(queued))
        await asyncio.sleep(0)

        shutdown = asyncio.create_task(queue.shutdown())
        await asyncio.sleep(0)
        assert not shutdown.done()

        release.set()
        await shutdown

        assert await first_call == "done"
        with pytest.raises(asyncio.CancelledError):
            await second_call

        with pytest.raises(RuntimeError):
            await queue.execute(queued)

    @pytest.mark.asyncio
    async def test_cancelled_task_does_not_hang_caller(self):
        queue = DispatchQueue(max_concurrent=1, min_interval=0)

        async def cancelled():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(queue.execute(cancelled), timeout=1.0)

        # Slot is released for the next task
        async def ok():
            return "ok"

        assert await asyncio.wait_for(queue.execute(ok), timeout=1.0) == "ok"
        assert queue.get_stats()["active"] == 0

    @pytest.mark.asyncio
    async def test_get_stats(self):
        queue = DispatchQueue(max_concurrent=3, min_interval=1.5)

        stats = queue.get_stats()

        assert stats == {
            "active": 0,
            "queued": 0,
            "max_concurrent": 3,
            "min_interval_seconds": 1.5,
            "total_started": 0,
            "total_failed": 0,
            "total_cancelled": 0,
        }
