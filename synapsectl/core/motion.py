"""Gyro mouse: rotation-rate samples to integer pointer deltas."""

from __future__ import annotations

import asyncio
import csv
import logging
import math
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

from synapsectl.core.errors import SettingsLoadError
from synapsectl.core.log_sink import LogSink
from synapsectl.core.model import Command, ControlSettings, Move, RotationSample
from synapsectl.core.scheduling import PeriodicTask

SAMPLE_RATE_HZ = 60.0
LOGGER = logging.getLogger(__name__)

SampleHandler = Callable[[RotationSample], None]


class MotionSource(Protocol):
    def start(self, handler: SampleHandler, interval_s: float) -> None: ...

    def stop(self) -> None:
        """Stop delivering samples before returning."""


def carry(raw: float, residual: float) -> tuple[int, float]:
    """Truncate `raw + residual` toward zero and return the whole part and what is left."""
    total = raw + residual
    whole = math.trunc(total)
    return whole, total - whole


class MotionSmoother:
    def __init__(
        self,
        source: MotionSource,
        emit: Callable[[Command], bool],
        log: LogSink,
        *,
        sample_rate_hz: float = SAMPLE_RATE_HZ,
    ) -> None:
        self._source = source
        self._emit = emit
        self._log = log
        self.sample_rate_hz = sample_rate_hz
        self._active = False
        self._sensitivity = 0.0
        self._invert_x = False
        self._invert_y = False
        self._residual_x = 0.0
        self._residual_y = 0.0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def residual(self) -> tuple[float, float]:
        return self._residual_x, self._residual_y

    def activate(self, settings: ControlSettings) -> None:
        if self._active:
            return
        self._sensitivity = settings.gyro_sensitivity
        self._invert_x = settings.invert_x
        self._invert_y = settings.invert_y
        self._reset()
        self._active = True
        self._source.start(self.on_sample, 1.0 / self.sample_rate_hz)
        self._log.append(f"Gyro mouse on (sensitivity {self._sensitivity:g})")

    def deactivate(self) -> None:
        was_active = self._active
        self._active = False
        self._source.stop()
        self._reset()
        if was_active:
            self._log.append("Gyro mouse off")

    def on_sample(self, sample: RotationSample) -> Move | None:
        if not self._active:
            return None
        # Device yaw drives horizontal pointer motion, pitch drives vertical.
        raw_x = sample.y * self._sensitivity * (-1.0 if self._invert_x else 1.0)
        raw_y = sample.x * self._sensitivity * (-1.0 if self._invert_y else 1.0)
        send_x, self._residual_x = carry(raw_x, self._residual_x)
        send_y, self._residual_y = carry(raw_y, self._residual_y)
        if send_x == 0 and send_y == 0:
            return None
        move = Move(send_x, send_y)
        self._emit(move)
        return move

    def _reset(self) -> None:
        self._residual_x = 0.0
        self._residual_y = 0.0


class ReplayMotionSource:
    """Feeds recorded samples at the requested rate, one per tick."""

    def __init__(self, samples: Iterable[RotationSample]) -> None:
        self._samples = list(samples)
        self._task: PeriodicTask | None = None
        self._finished: asyncio.Event | None = None

    def __len__(self) -> int:
        return len(self._samples)

    def start(self, handler: SampleHandler, interval_s: float) -> None:
        self.stop()
        remaining = iter(self._samples)
        finished = asyncio.Event()
        self._finished = finished

        def _tick() -> None:
            sample = next(remaining, None)
            if sample is None:
                self.stop()
                return
            handler(sample)

        self._task = PeriodicTask(interval_s, _tick)
        self._task.start()

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
        if self._finished is not None:
            self._finished.set()

    async def wait_finished(self) -> None:
        if self._finished is not None:
            await self._finished.wait()


def load_samples(path: Path) -> list[RotationSample]:
    """Read `x,y[,z]` rotation-rate rows; blank lines and `#` comments are skipped."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsLoadError(f"Could not read motion samples {path}: {exc}") from exc

    samples: list[RotationSample] = []
    for line_no, row in enumerate(csv.reader(text.splitlines()), start=1):
        if not row or row[0].strip().startswith("#"):
            continue
        try:
            values = [float(value) for value in row]
        except ValueError as exc:
            raise SettingsLoadError(f"{path}:{line_no}: invalid sample {row!r}") from exc
        if len(values) not in (2, 3):
            raise SettingsLoadError(f"{path}:{line_no}: expected 2 or 3 values, got {len(values)}")
        samples.append(RotationSample(*values))
    LOGGER.debug("Loaded %d motion samples from %s", len(samples), path)
    return samples
