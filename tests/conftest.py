from __future__ import annotations

import asyncio

import pytest

from synapsectl.core.engine import BridgeEngine
from synapsectl.core.model import DEFAULT_SERVICE_UUID, DEFAULT_WRITE_CHAR_UUID, ControlSettings
from synapsectl.core.settings_loader import StaticSettingsStore
from synapsectl.transports.base import (
    DeviceDiscovered,
    EventSink,
    LinkConnected,
    LinkEvent,
    ServicesResolved,
    SignalStrengthRead,
)

ACCESSORY = "AA:BB:CC:11:22:33"


class FakeLinkTransport:
    def __init__(self, *, powered_on: bool = True) -> None:
        self.powered_on = powered_on
        self.sink: EventSink | None = None
        self.calls: list[tuple[str, ...]] = []
        self.writes: list[str] = []

    def bind(self, sink: EventSink) -> None:
        self.sink = sink

    def is_powered_on(self) -> bool:
        return self.powered_on

    def start_scan(self, service_uuid: str) -> None:
        self.calls.append(("start_scan", service_uuid))

    def stop_scan(self) -> None:
        self.calls.append(("stop_scan",))

    def connect(self, address: str) -> None:
        self.calls.append(("connect", address))

    def discover(self, service_uuid: str, write_char_uuid: str) -> None:
        self.calls.append(("discover", service_uuid, write_char_uuid))

    def disconnect(self, address: str) -> None:
        self.calls.append(("disconnect", address))

    def write(self, write_channel: str, payload: bytes) -> None:
        self.writes.append(payload.decode("utf-8"))

    def request_signal_strength(self, address: str) -> None:
        self.calls.append(("rssi", address))

    async def flush(self) -> None:
        return None

    def emit(self, event: LinkEvent) -> None:
        assert self.sink is not None
        self.sink(event)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


def bring_up(transport: FakeLinkTransport, address: str = ACCESSORY) -> None:
    transport.emit(DeviceDiscovered(address, "Synapse Dongle v1", (DEFAULT_SERVICE_UUID,), -50))
    transport.emit(LinkConnected(address))
    transport.emit(ServicesResolved(DEFAULT_WRITE_CHAR_UUID))


@pytest.fixture
def transport() -> FakeLinkTransport:
    return FakeLinkTransport()


@pytest.fixture
def settings() -> ControlSettings:
    return ControlSettings()


@pytest.fixture
def engine(transport: FakeLinkTransport, settings: ControlSettings) -> BridgeEngine:
    return BridgeEngine(
        transport,
        settings=StaticSettingsStore(settings),
        proximity_interval_s=0.01,
        char_spacing_s=0.005,
    )


@pytest.fixture
def ready_engine(engine: BridgeEngine, transport: FakeLinkTransport) -> BridgeEngine:
    engine.connect()
    bring_up(transport)
    assert engine.is_ready
    return engine


class AutoLinkTransport(FakeLinkTransport):
    """Answers every request with the event a healthy accessory would produce."""

    def __init__(self, *, powered_on: bool = True, rssi: int = -50) -> None:
        super().__init__(powered_on=powered_on)
        self.rssi = rssi

    def _later(self, event: LinkEvent) -> None:
        asyncio.get_running_loop().call_soon(self.emit, event)

    def start_scan(self, service_uuid: str) -> None:
        super().start_scan(service_uuid)
        self._later(DeviceDiscovered(ACCESSORY, "Synapse Dongle v1", (service_uuid,), -50))

    def connect(self, address: str) -> None:
        super().connect(address)
        self._later(LinkConnected(address))

    def discover(self, service_uuid: str, write_char_uuid: str) -> None:
        super().discover(service_uuid, write_char_uuid)
        self._later(ServicesResolved(write_char_uuid))

    def request_signal_strength(self, address: str) -> None:
        super().request_signal_strength(address)
        self._later(SignalStrengthRead(self.rssi))
