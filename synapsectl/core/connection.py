"""Connection state machine over a link transport."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from synapsectl.core.log_sink import LogSink
from synapsectl.core.model import ConnectionState, DeviceHandle, LinkSpec
from synapsectl.transports.base import (
    DeviceDiscovered,
    LinkConnected,
    LinkDisconnected,
    LinkEvent,
    LinkTransport,
    RadioStateChanged,
    ServiceDiscoveryFailed,
    ServicesResolved,
)

LOGGER = logging.getLogger(__name__)

StateListener = Callable[[ConnectionState, ConnectionState], None]

_ACTIVE_STATES = frozenset(
    {
        ConnectionState.SCANNING,
        ConnectionState.CONNECTING,
        ConnectionState.DISCOVERING,
        ConnectionState.READY,
    }
)


@dataclass(frozen=True)
class ConnectRequested:
    pass


@dataclass(frozen=True)
class DisconnectRequested:
    pass


ConnectionEvent = LinkEvent | ConnectRequested | DisconnectRequested


class ConnectionManager:
    """Owns `ConnectionState` and the `DeviceHandle`.

    User requests and transport events both go through `handle`, one event
    at a time. Other components only see `is_ready` and `write`.
    """

    def __init__(
        self,
        transport: LinkTransport,
        log: LogSink,
        *,
        link: LinkSpec | None = None,
    ) -> None:
        self._transport = transport
        self._log = log
        self._link = link or LinkSpec()
        self._state = ConnectionState.IDLE
        self._device: DeviceHandle | None = None
        self._state_listeners: list[StateListener] = []
        self._teardown_hooks: list[Callable[[], None]] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def is_active(self) -> bool:
        """True while scanning, connecting, negotiating, or connected."""
        return self._state in _ACTIVE_STATES

    @property
    def device_name(self) -> str | None:
        return self._device.name if self._device else None

    @property
    def link(self) -> LinkSpec:
        return self._link

    @link.setter
    def link(self, link: LinkSpec) -> None:
        if self.is_active:
            raise RuntimeError("Link identifiers cannot change while a connection is active")
        self._link = link

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._state_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return _unsubscribe

    def add_teardown_hook(self, hook: Callable[[], None]) -> None:
        """Run `hook` whenever the link is torn down. Hooks must be idempotent."""
        self._teardown_hooks.append(hook)

    def connect(self) -> None:
        self.handle(ConnectRequested())

    def disconnect(self) -> None:
        self.handle(DisconnectRequested())

    def toggle_connection(self) -> None:
        if self.is_active:
            self.disconnect()
        else:
            self.connect()

    def write(self, payload: bytes) -> bool:
        device = self._device
        if not self.is_ready or device is None or device.write_channel is None:
            LOGGER.debug("Write suppressed in state %s: %r", self._state.value, payload)
            return False
        self._transport.write(device.write_channel, payload)
        return True

    def request_signal_strength(self) -> bool:
        if not self.is_ready or self._device is None:
            return False
        self._transport.request_signal_strength(self._device.address)
        return True

    def abort(self, reason: str) -> None:
        """Drop the link and return to idle after an unexpected failure."""
        self._log.append(f"Connection reset: {reason}", level=logging.ERROR)
        self._teardown()
        if self._state is not ConnectionState.RADIO_UNAVAILABLE:
            self._set_state(ConnectionState.IDLE)

    def handle(self, event: ConnectionEvent) -> None:
        if isinstance(event, ConnectRequested):
            self._on_connect_requested()
        elif isinstance(event, DisconnectRequested):
            self._on_disconnect_requested()
        elif isinstance(event, RadioStateChanged):
            self._on_radio_state(event)
        elif isinstance(event, DeviceDiscovered):
            self._on_discovered(event)
        elif isinstance(event, LinkConnected):
            self._on_link_connected(event)
        elif isinstance(event, ServicesResolved):
            self._on_services_resolved(event)
        elif isinstance(event, ServiceDiscoveryFailed):
            self._on_discovery_failed(event)
        elif isinstance(event, LinkDisconnected):
            self._on_link_disconnected(event)
        else:
            LOGGER.debug("Connection manager ignoring %s", type(event).__name__)

    def _on_connect_requested(self) -> None:
        if self.is_active or self._state is ConnectionState.DISCONNECTING:
            LOGGER.debug("Connect ignored in state %s", self._state.value)
            return
        if not self._transport.is_powered_on():
            self._set_state(ConnectionState.RADIO_UNAVAILABLE)
            self._log.append("Bluetooth is off. Turn it on and connect again.", level=logging.WARNING)
            return
        self._set_state(ConnectionState.SCANNING)
        self._transport.start_scan(self._link.service_uuid)
        self._log.append("Scanning for accessory...")

    def _on_disconnect_requested(self) -> None:
        previous = self._state
        if previous not in _ACTIVE_STATES:
            self._teardown()
            return
        self._set_state(ConnectionState.DISCONNECTING)
        if previous is ConnectionState.SCANNING:
            self._transport.stop_scan()
        elif self._device is not None:
            self._transport.disconnect(self._device.address)
        self._teardown()
        self._set_state(ConnectionState.IDLE)
        self._log.append("Disconnected")

    def _on_radio_state(self, event: RadioStateChanged) -> None:
        if event.powered_on:
            if self._state is ConnectionState.RADIO_UNAVAILABLE:
                self._set_state(ConnectionState.IDLE)
                self._log.append("Bluetooth is on")
            return
        if self._state is ConnectionState.RADIO_UNAVAILABLE:
            return
        if self._state is ConnectionState.SCANNING:
            self._transport.stop_scan()
        self._teardown()
        self._set_state(ConnectionState.RADIO_UNAVAILABLE)
        self._log.append("Bluetooth turned off", level=logging.WARNING)

    def _on_discovered(self, event: DeviceDiscovered) -> None:
        if self._state is not ConnectionState.SCANNING:
            return
        wanted = self._link.service_uuid.lower()
        if wanted not in (uuid.lower() for uuid in event.service_uuids):
            LOGGER.debug("Ignoring %s: service %s not advertised", event.address, wanted)
            return
        self._transport.stop_scan()
        self._device = DeviceHandle(address=event.address, name=event.name)
        self._set_state(ConnectionState.CONNECTING)
        self._transport.connect(event.address)
        self._log.append(f"Found {event.name}, connecting...")

    def _on_link_connected(self, event: LinkConnected) -> None:
        if self._state is not ConnectionState.CONNECTING or not self._is_current(event.address):
            return
        self._set_state(ConnectionState.DISCOVERING)
        self._transport.discover(self._link.service_uuid, self._link.write_char_uuid)

    def _on_services_resolved(self, event: ServicesResolved) -> None:
        if self._state is not ConnectionState.DISCOVERING or self._device is None:
            return
        self._device = replace(self._device, write_channel=event.write_channel)
        self._set_state(ConnectionState.READY)
        self._log.append(f"Connected to {self._device.name}")

    def _on_discovery_failed(self, event: ServiceDiscoveryFailed) -> None:
        if self._state is not ConnectionState.DISCOVERING:
            return
        self._log.append(f"Accessory setup failed: {event.reason}", level=logging.ERROR)
        if self._device is not None:
            self._transport.disconnect(self._device.address)
        self._teardown()
        self._set_state(ConnectionState.IDLE)

    def _on_link_disconnected(self, event: LinkDisconnected) -> None:
        if self._state not in _ACTIVE_STATES:
            return
        if event.address is not None and not self._is_current(event.address):
            return
        reason = f": {event.reason}" if event.reason else ""
        self._log.append(f"Link dropped{reason}", level=logging.WARNING)
        self._teardown()
        self._set_state(ConnectionState.IDLE)

    def _is_current(self, address: str) -> bool:
        return self._device is not None and self._device.address.upper() == address.upper()

    def _teardown(self) -> None:
        self._device = None
        for hook in tuple(self._teardown_hooks):
            hook()

    def _set_state(self, state: ConnectionState) -> None:
        previous = self._state
        if state is previous:
            return
        self._state = state
        LOGGER.debug("Connection state %s -> %s", previous.value, state.value)
        for listener in tuple(self._state_listeners):
            listener(previous, state)
