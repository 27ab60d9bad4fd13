"""Tests for the sequential task queue."""

import asyncio

import pytest

from claim_organizer.digestion.task_queue import SequentialTaskQueue
from claim_organizer.errors import TaskTimeout


async def collect(queue: SequentialTaskQueue) -> list:
    return [result async for result in queue.drain()]


class TestSequentialTaskQueue:
    """Tests for SequentialTaskQueue."""

    @pytest.mark.asyncio
    async def test_runs_in_submission_order(self):
        order = []

        async def task(name):
            order.append(f"start {name}")
            await asyncio.sleep(0)
            order.append(f"end {name}")
            return name

        queue = SequentialTaskQueue()
        for name in ["a", "b", "c"]:
            queue.submit(name, lambda n=name: task(n))

        results = await collect(queue)

        assert [r.value for r in results] == ["a", "b", "c"]
        assert order == ["start a", "end a", "start b", "end b", "start c", "end c"]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_factories_are_lazy(self):
        """Each task sees the effects of the tasks before it."""
        seen = []

        async def record():
            seen.append(len(seen))
            return list(seen)

        queue = SequentialTaskQueue()
        queue.submit("first", record)
        queue.submit("second", record)

        results = await collect(queue)

        assert results[1].value == [0, 1]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_queue(self):
        async def boom():
            raise RuntimeError("bad document")

        async def fine():
            return "ok"

        queue = SequentialTaskQueue()
        queue.submit("boom", boom)
        queue.submit("fine", fine)

        results = await collect(queue)

        assert not results[0].ok
        assert isinstance(results[0].error, RuntimeError)
        assert results[1].ok
        assert results[1].value == "ok"

    @pytest.mark.asyncio
    async def test_timeout_becomes_task_timeout(self):
        async def slow():
            await asyncio.sleep(5)

        queue = SequentialTaskQueue(timeout_seconds=0.01)
        queue.submit("slow", slow)

        [result] = await collect(queue)

        assert isinstance(result.error, TaskTimeout)
        assert result.error.timeout_seconds == 0.01

    @pytest.mark.asyncio
    async def test_context_is_returned(self):
        async def fine():
            return 1

        queue = SequentialTaskQueue()
        queue.submit("x", fine, context={"doc": "a.pdf"})

        [result] = await collect(queue)

        assert result.name == "x"
        assert result.context == {"doc": "a.pdf"}
        assert result.duration_ms >= 0
