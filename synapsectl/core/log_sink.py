"""Bounded status log shared by every engine component."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime

from synapsectl.core.model import LogEntry

LOG_CAPACITY = 100
LOGGER = logging.getLogger("synapsectl")

LogListener = Callable[[LogEntry], None]


class LogSink:
    """Fixed-capacity ring of status messages, newest first when read.

    Each entry is also forwarded to the ``synapsectl`` stdlib logger so a
    host application can route engine status wherever it already logs.
    """

    def __init__(
        self,
        capacity: int = LOG_CAPACITY,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._clock = clock
        self._listeners: list[LogListener] = []

    def append(self, message: str, *, level: int = logging.INFO) -> LogEntry:
        entry = LogEntry(timestamp=self._clock(), message=message)
        self._entries.append(entry)
        LOGGER.log(level, message)
        for listener in tuple(self._listeners):
            listener(entry)
        return entry

    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(reversed(self._entries))

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def __len__(self) -> int:
        return len(self._entries)
