"""Event-loop helpers: keyed serialisation and best-effort background work."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Coroutine

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand and dropped when unused.

    Waiters on the same key are served in arrival order, which is what the
    socket handlers rely on for per-customer and per-conversation ordering.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, key: str) -> bool:
        """True while the key is held or waited on."""
        return key in self._locks


class BestEffortRunner:
    """
    Fire-and-forget runner for writes whose failure must not block the caller.

    Every coroutine passed to ``run`` is scheduled as a task; failures are
    logged at WARNING and never re-raised. Tasks are kept referenced until
    they finish so the event loop cannot garbage-collect them mid-flight.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def run(self, coro: Coroutine, description: str) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finished(t, description))
        return task

    def _finished(self, task: asyncio.Task, description: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Best-effort {description} failed: {exc!r}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> int:
        """
        Wait for in-flight tasks, at most ``timeout`` seconds when given.

        Returns:
            Number of tasks still running
        """
        if not self._tasks:
            return 0
        _, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        return len(pending)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
