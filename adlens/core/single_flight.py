"""AdLens — Single-Flight Request Deduplication.

Concurrent callers asking for the same key share one running task instead
of each triggering the same database work. The registry belongs to the
event loop that created the tasks; it is not meant to be used across threads.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict

from adlens.core.logging import get_logger

logger = get_logger("core.single_flight")


class SingleFlight:
    """Keyed registry of in-flight tasks that late callers join."""

    def __init__(self):
        self._calls: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def in_flight(self, key: str) -> bool:
        return key in self._calls

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``fn`` for ``key`` unless a run is already pending, then share it.

        The marker is removed when the task settles, whether it succeeded or
        failed. A caller that is cancelled does not cancel the shared task.
        """
        task = self._calls.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._calls[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.info(f"Joining in-flight computation for {key}", extra={"cache_key": key})
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._calls.get(key) is task:
            del self._calls[key]

    def clear(self) -> None:
        """Forget all pending keys. Running tasks still finish for their waiters."""
        self._calls.clear()
