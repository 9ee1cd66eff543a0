"""Cancellable periodic task handle."""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class PeriodicTask:
    """Call `callback` every `interval_s` seconds on the running loop.

    `cancel()` takes effect before it returns: the loop body runs only on
    this event loop, so once the task is cancelled no further tick fires.
    """

    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.interval_s = interval_s
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._cancelled

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        self._cancelled = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + self.interval_s
        while True:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            if self._cancelled:
                return
            self._callback()
            next_fire += self.interval_s
