"""Fire-and-forget runner for best-effort cache writes.

Cache writes must not delay or fail the store operation that triggered them.
They run as detached asyncio tasks; failures are logged at WARNING level and
never re-raised.

Tasks start eagerly: the coroutine runs synchronously up to its first real
suspension before ``spawn`` returns, so the cache command is issued ahead of
anything the caller does next.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Owns detached tasks until they finish.

    The event loop only keeps weak references to tasks, so a strong reference
    is held here until completion.
    """

    def __init__(self, log: logging.Logger | None = None):
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = log or logger

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task[Any]:
        """Start ``coro`` eagerly without awaiting its completion.

        Must be called from within a running event loop.
        """
        task = asyncio.Task(coro, loop=asyncio.get_running_loop(), eager_start=True)
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._on_done(done, description))
        return task

    def _on_done(self, task: asyncio.Task[Any], description: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._logger.debug(f"{description} cancelled")
            return
        error = task.exception()
        if error is not None:
            self._logger.warning(f"{description} error: {error!r}")

    async def drain(self) -> None:
        """Wait until every scheduled task (including ones spawned meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            # Let done callbacks run before re-checking
            await asyncio.sleep(0)
