"""Sequential task queue with per-task time bounds.

Tasks run strictly one after another. Each is bounded by a timeout and its
outcome, success or failure, is captured as a TaskResult so one failing
document never aborts the batch.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from claim_organizer.errors import TaskTimeout

logger = logging.getLogger(__name__)


@dataclass
class TaskResult:
    """Outcome of one queued task."""

    name: str
    value: Any = None
    error: Exception | None = None
    duration_ms: float = 0
    context: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SequentialTaskQueue:
    """FIFO queue of coroutine factories executed one at a time.

    Factories are invoked only when their turn comes, so each task observes
    the effects of every task before it.

    Usage:
        queue = SequentialTaskQueue(timeout_seconds=60)
        queue.submit("scan-001.pdf", lambda: process(doc))
        async for result in queue.drain():
            ...
    """

    def __init__(self, timeout_seconds: float | None = None):
        """Initialize task queue.

        Args:
            timeout_seconds: Bound for each task. None disables the bound.
        """
        self.timeout_seconds = timeout_seconds
        self._pending: deque[tuple[str, Callable[[], Awaitable[Any]], Any]] = deque()

    def __len__(self) -> int:
        return len(self._pending)

    def submit(
        self,
        name: str,
        factory: Callable[[], Awaitable[Any]],
        context: Any = None,
    ) -> None:
        """Queue a task.

        Args:
            name: Identifier used in logs and results.
            factory: Zero-argument callable returning the awaitable to run.
            context: Caller data handed back on the TaskResult.
        """
        self._pending.append((name, factory, context))

    async def drain(self) -> AsyncIterator[TaskResult]:
        """Run queued tasks in order, yielding each result as it completes."""
        while self._pending:
            name, factory, context = self._pending.popleft()
            result = await self._run(name, factory)
            result.context = context
            yield result

    async def _run(self, name: str, factory: Callable[[], Awaitable[Any]]) -> TaskResult:
        start_time = time.time()
        result = TaskResult(name=name)
        try:
            if self.timeout_seconds is None:
                result.value = await factory()
            else:
                result.value = await asyncio.wait_for(factory(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            result.error = TaskTimeout(
                f"Task {name} exceeded {self.timeout_seconds}s",
                timeout_seconds=self.timeout_seconds or 0,
            )
        except Exception as e:
            result.error = e
        result.duration_ms = (time.time() - start_time) * 1000

        if result.error is not None:
            logger.debug(f"Task {name} failed after {result.duration_ms:.0f}ms: {result.error}")
        return result
