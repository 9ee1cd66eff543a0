"""Proximity auto-lock: one-shot lock when the signal gets weak."""

from __future__ import annotations

import logging
from collections.abc import Callable

from synapsectl.core.log_sink import LogSink
from synapsectl.core.scheduling import PeriodicTask

LOCK_THRESHOLD_DBM = -85
POLL_INTERVAL_S = 2.0

LOGGER = logging.getLogger(__name__)


class ProximityMonitor:
    def __init__(
        self,
        request_reading: Callable[[], bool],
        on_trigger: Callable[[], None],
        log: LogSink,
        *,
        interval_s: float = POLL_INTERVAL_S,
        threshold_dbm: int = LOCK_THRESHOLD_DBM,
    ) -> None:
        self._request_reading = request_reading
        self._on_trigger = on_trigger
        self._log = log
        self.interval_s = interval_s
        self.threshold_dbm = threshold_dbm
        self._armed = False
        self._last_reading: int | None = None
        self._task: PeriodicTask | None = None
        # Requests not yet answered, and how many of those predate the current arming.
        self._in_flight = 0
        self._stale = 0

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def last_reading(self) -> int | None:
        return self._last_reading

    def activate(self) -> None:
        if self._armed:
            return
        self._armed = True
        self._stale = self._in_flight
        self._task = PeriodicTask(self.interval_s, self._tick)
        self._task.start()
        self._log.append(f"Proximity lock armed (below {self.threshold_dbm} dBm)")

    def deactivate(self) -> None:
        was_armed = self._armed
        self._disarm()
        if was_armed:
            self._log.append("Proximity lock off")

    def on_reading(self, rssi: int | None) -> bool:
        """Record a signal reading; return True when it fired the lock."""
        if self._in_flight:
            self._in_flight -= 1
        if self._stale:
            self._stale -= 1
            LOGGER.debug("Ignoring signal reading %s from an earlier arming", rssi)
            return False
        if rssi is None:
            return False
        self._last_reading = rssi
        if not self._armed or rssi >= self.threshold_dbm:
            return False
        self._disarm()
        self._log.append(f"Signal {rssi} dBm: locking workstation", level=logging.WARNING)
        self._on_trigger()
        return True

    def _tick(self) -> None:
        if self._armed and self._request_reading():
            self._in_flight += 1

    def _disarm(self) -> None:
        self._armed = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
