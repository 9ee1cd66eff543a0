"""Paced typing of a string as single-character commands."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable

from synapsectl.core.log_sink import LogSink
from synapsectl.core.model import Char, Command

CHAR_SPACING_S = 0.02


class BulkTextTransmitter:
    """Schedules one `Char` per code point at ``t0 + index * spacing``.

    Every send still passes the Ready gate in `emit`; `cancel()` also drops
    whatever is still pending.
    """

    def __init__(
        self,
        emit: Callable[[Command], bool],
        log: LogSink,
        *,
        spacing_s: float = CHAR_SPACING_S,
    ) -> None:
        if spacing_s <= 0:
            raise ValueError("spacing_s must be positive")
        self._emit = emit
        self._log = log
        self.spacing_s = spacing_s
        self._pending: dict[int, asyncio.TimerHandle] = {}
        self._seq = itertools.count()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def transmit(self, text: str) -> int:
        if not text:
            return 0
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        for index, char in enumerate(text):
            seq = next(self._seq)
            self._pending[seq] = loop.call_at(t0 + index * self.spacing_s, self._fire, seq, char)
        self._log.append(f"Typing {len(text)} characters")
        return len(text)

    def cancel(self) -> None:
        pending, self._pending = self._pending, {}
        for handle in pending.values():
            handle.cancel()

    def _fire(self, seq: int, char: str) -> None:
        self._pending.pop(seq, None)
        self._emit(Char(char))
