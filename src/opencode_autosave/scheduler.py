"""
Per-session debounce timers.

Repeated idle signals for a session re-arm a single timer, so only the last
signal in a quiet window triggers a flush. Deletion cancels the timer and
runs the flush right away.

When a timer fires, the flush runs as its own background task; the timer
callback does not wait for it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from opencode_autosave.logging import get_logger

logger = get_logger("scheduler")

FlushAction = Callable[[], Awaitable[Any]]


class DebounceScheduler:
    """Maps session id -> pending ``asyncio.TimerHandle``."""

    def __init__(self) -> None:
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def on_idle(self, key: str, delay: float, action: FlushAction) -> None:
        """(Re)arm the timer for *key*; *action* runs *delay* seconds from now."""
        if self.cancel(key):
            logger.debug("Debounce reset for %s", key)

        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire, key, action)

    async def on_delete(self, key: str, action: FlushAction) -> None:
        """Supersede any pending timer for *key* and run *action* now."""
        self.cancel(key)
        await action()

    def cancel(self, key: str) -> bool:
        """Cancel the pending timer for *key*. Returns True if one existed."""
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def is_pending(self, key: str) -> bool:
        return key in self._timers

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    async def drain(self) -> None:
        """Wait for every flush task already spawned by a fired timer."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _fire(self, key: str, action: FlushAction) -> None:
        self._timers.pop(key, None)
        task = asyncio.ensure_future(action())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Debounced flush failed: %s", exc)
