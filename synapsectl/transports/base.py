"""Link transport interface and the events it reports."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class RadioStateChanged:
    powered_on: bool


@dataclass(frozen=True)
class DeviceDiscovered:
    address: str
    name: str
    service_uuids: tuple[str, ...]
    rssi: int | None = None


@dataclass(frozen=True)
class LinkConnected:
    address: str


@dataclass(frozen=True)
class ServicesResolved:
    write_channel: str


@dataclass(frozen=True)
class ServiceDiscoveryFailed:
    reason: str


@dataclass(frozen=True)
class LinkDisconnected:
    address: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class SignalStrengthRead:
    rssi: int | None


LinkEvent = (
    RadioStateChanged
    | DeviceDiscovered
    | LinkConnected
    | ServicesResolved
    | ServiceDiscoveryFailed
    | LinkDisconnected
    | SignalStrengthRead
)

EventSink = Callable[[LinkEvent], None]


class LinkTransport(Protocol):
    """Radio primitives. Every call returns immediately; outcomes arrive as events."""

    def bind(self, sink: EventSink) -> None:
        """Register where asynchronous link events are delivered."""

    def is_powered_on(self) -> bool: ...

    def start_scan(self, service_uuid: str) -> None: ...

    def stop_scan(self) -> None: ...

    def connect(self, address: str) -> None: ...

    def discover(self, service_uuid: str, write_char_uuid: str) -> None: ...

    def disconnect(self, address: str) -> None: ...

    def write(self, write_channel: str, payload: bytes) -> None:
        """Unacknowledged write; failures are never reported back."""

    def request_signal_strength(self, address: str) -> None: ...

    async def flush(self) -> None:
        """Wait until every scheduled operation has been handed to the radio."""
