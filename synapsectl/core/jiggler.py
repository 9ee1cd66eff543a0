"""Keep-awake toggle."""

from __future__ import annotations

from collections.abc import Callable

from synapsectl.core.log_sink import LogSink
from synapsectl.core.model import Command, Config

JIGGLER_CONFIG_NAME = "Jiggler"


class ActivityToggle:
    def __init__(self, emit: Callable[[Command], bool], log: LogSink) -> None:
        self._emit = emit
        self._log = log
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def toggle(self) -> bool:
        self._enabled = not self._enabled
        self._emit(Config(JIGGLER_CONFIG_NAME, self._enabled))
        self._log.append(f"Anti-sleep {'on' if self._enabled else 'off'}")
        return self._enabled

    def reset(self) -> None:
        self._enabled = False
