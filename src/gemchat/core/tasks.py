"""Fire-and-forget background tasks for persistence writes."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from gemchat.log import get_logger

logger = get_logger(__name__)


class BackgroundTasks:
    """Runs detached coroutines and logs their failures.

    Callers never await the work they submit; failures are logged with the
    operation name and dropped. :meth:`drain` exists for shutdown and tests.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], operation: str, **context: Any) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error("background_task_failed", operation=operation, error=str(exc), **context)

        task.add_done_callback(_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every task submitted so far, including ones they submit."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
