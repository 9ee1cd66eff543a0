from __future__ import annotations

import asyncio
import math
import random
from pathlib import Path

import pytest
from conftest import FakeLinkTransport, bring_up

from synapsectl.core.engine import BridgeEngine
from synapsectl.core.errors import SettingsLoadError
from synapsectl.core.log_sink import LogSink
from synapsectl.core.model import ControlSettings, FeatureKind, Move, RotationSample
from synapsectl.core.motion import MotionSmoother, ReplayMotionSource, carry, load_samples
from synapsectl.core.settings_loader import StaticSettingsStore


class FakeMotionSource:
    def __init__(self) -> None:
        self.handler = None
        self.interval_s: float | None = None
        self.stops = 0

    def start(self, handler, interval_s: float) -> None:
        self.handler = handler
        self.interval_s = interval_s

    def stop(self) -> None:
        self.handler = None
        self.stops += 1


def _smoother(**settings) -> tuple[MotionSmoother, FakeMotionSource, list[Move]]:
    source = FakeMotionSource()
    moves: list[Move] = []

    def _emit(command) -> bool:
        moves.append(command)
        return True

    smoother = MotionSmoother(source, _emit, LogSink())
    smoother.activate(ControlSettings(**settings))
    return smoother, source, moves


def test_carry_truncates_toward_zero() -> None:
    assert carry(1.75, 0.0) == (1, 0.75)
    assert carry(-1.75, 0.0) == (-1, -0.75)
    assert carry(0.5, 0.5) == (1, 0.0)


def test_sensitivity_forty_five_samples_sum_two_hundred() -> None:
    smoother, source, moves = _smoother(gyro_sensitivity=40.0)

    for _ in range(5):
        smoother.on_sample(RotationSample(x=0.0, y=1.0))

    assert source.interval_s == pytest.approx(1 / 60)
    assert sum(m.dx for m in moves) == 200
    assert all(m.dy == 0 for m in moves)


def test_slow_tilt_still_moves() -> None:
    smoother, _, moves = _smoother(gyro_sensitivity=8.0)

    smoother.on_sample(RotationSample(x=0.0, y=0.0625))
    assert moves == []
    smoother.on_sample(RotationSample(x=0.0, y=0.0625))

    assert moves == [Move(1, 0)]


def test_axes_are_cross_mapped_and_inverted() -> None:
    smoother, _, moves = _smoother(gyro_sensitivity=12.0, invert_x=True)

    smoother.on_sample(RotationSample(x=0.5, y=0.25))

    assert moves == [Move(-3, 6)]


def test_motion_is_conserved() -> None:
    smoother, _, moves = _smoother(gyro_sensitivity=73.0, invert_y=True)
    rng = random.Random(7)
    raw_x = raw_y = 0.0

    for _ in range(500):
        sample = RotationSample(x=rng.uniform(-0.2, 0.2), y=rng.uniform(-0.2, 0.2))
        raw_x += sample.y * 73.0
        raw_y += -sample.x * 73.0
        smoother.on_sample(sample)

    residual_x, residual_y = smoother.residual
    assert sum(m.dx for m in moves) + residual_x == pytest.approx(raw_x, abs=1e-6)
    assert sum(m.dy for m in moves) + residual_y == pytest.approx(raw_y, abs=1e-6)
    assert all(m.dx != 0 or m.dy != 0 for m in moves)
    assert all(math.fabs(r) < 1 for r in smoother.residual)


def test_reactivation_starts_without_residual() -> None:
    smoother, source, _ = _smoother(gyro_sensitivity=10.0)
    smoother.on_sample(RotationSample(x=0.07, y=0.07))
    assert smoother.residual != (0.0, 0.0)

    smoother.deactivate()
    smoother.activate(ControlSettings(gyro_sensitivity=10.0))

    assert smoother.residual == (0.0, 0.0)
    assert source.stops == 1


def test_samples_after_deactivation_are_ignored() -> None:
    smoother, _, moves = _smoother(gyro_sensitivity=100.0)
    smoother.deactivate()

    assert smoother.on_sample(RotationSample(x=1.0, y=1.0)) is None
    assert moves == []


def test_disconnect_stops_gyro_and_resets(transport: FakeLinkTransport) -> None:
    source = FakeMotionSource()
    engine = BridgeEngine(
        transport,
        settings=StaticSettingsStore(ControlSettings(gyro_sensitivity=10.0)),
        motion_source=source,
    )
    engine.connect()
    bring_up(transport)
    assert engine.activate_feature(FeatureKind.MOTION) is True

    source.handler(RotationSample(x=0.0, y=0.25))
    assert transport.writes == ["MOVE:2:0"]

    engine.disconnect()

    assert engine.motion is not None
    assert engine.motion.active is False
    assert engine.motion.residual == (0.0, 0.0)
    assert source.handler is None


def test_motion_requires_ready(engine) -> None:
    assert engine.activate_feature(FeatureKind.MOTION) is False


def test_replay_source_feeds_samples_in_order() -> None:
    samples = [RotationSample(0.0, 0.1), RotationSample(0.0, 0.2), RotationSample(0.0, 0.3)]
    source = ReplayMotionSource(samples)
    received: list[RotationSample] = []

    async def _scenario() -> None:
        source.start(received.append, 0.001)
        await asyncio.wait_for(source.wait_finished(), 1.0)

    asyncio.run(_scenario())
    assert received == samples


def test_load_samples(tmp_path: Path) -> None:
    path = tmp_path / "tilt.csv"
    path.write_text("# x,y,z\n0.1,0.2,0.0\n\n-0.5,1\n", encoding="utf-8")

    assert load_samples(path) == [RotationSample(0.1, 0.2, 0.0), RotationSample(-0.5, 1.0)]


def test_load_samples_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "bad.csv"
    path.write_text("0.1,abc\n", encoding="utf-8")

    with pytest.raises(SettingsLoadError):
        load_samples(path)
