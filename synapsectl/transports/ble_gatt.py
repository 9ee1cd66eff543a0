"""BLE GATT link transport implementation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from types import ModuleType
from typing import Any

from synapsectl.core.errors import LinkError
from synapsectl.transports.base import (
    DeviceDiscovered,
    EventSink,
    LinkConnected,
    LinkDisconnected,
    LinkEvent,
    RadioStateChanged,
    ServiceDiscoveryFailed,
    ServicesResolved,
    SignalStrengthRead,
)

LOGGER = logging.getLogger(__name__)


def _bleak() -> ModuleType:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise LinkError("BLE transport requires 'bleak'. Install dependency and retry.") from exc
    return bleak


def _radio_unavailable(bleak: ModuleType, exc: Exception) -> bool:
    not_available = getattr(bleak.exc, "BleakBluetoothNotAvailableError", None)
    return not_available is None or isinstance(exc, not_available)


class BLELinkTransport:
    """`LinkTransport` backed by bleak.

    Every primitive schedules a task on the running loop and reports its
    outcome through the bound event sink, so callers never await hardware.
    """

    def __init__(self, *, connect_timeout_s: float = 10.0, rssi_scan_s: float = 1.0) -> None:
        self.connect_timeout_s = connect_timeout_s
        self.rssi_scan_s = rssi_scan_s
        self._sink: EventSink | None = None
        self._scanner: Any = None
        self._client: Any = None
        self._write_lock: asyncio.Lock | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    def bind(self, sink: EventSink) -> None:
        self._sink = sink

    def is_powered_on(self) -> bool:
        """bleak has no portable adapter-state query; a failed scan start reports the radio off."""
        return True

    def start_scan(self, service_uuid: str) -> None:
        bleak = _bleak()

        def _detected(device: Any, adv: Any) -> None:
            self._post(
                DeviceDiscovered(
                    address=device.address,
                    name=device.name or adv.local_name or "<unknown-device>",
                    service_uuids=tuple(uuid.lower() for uuid in adv.service_uuids),
                    rssi=adv.rssi,
                )
            )

        scanner = bleak.BleakScanner(detection_callback=_detected, service_uuids=[service_uuid])
        self._scanner = scanner

        async def _run() -> None:
            try:
                await scanner.start()
            except bleak.exc.BleakError as exc:
                LOGGER.warning("BLE scan could not start: %s", exc)
                if self._scanner is not scanner:
                    return
                self._scanner = None
                if _radio_unavailable(bleak, exc):
                    self._post(RadioStateChanged(powered_on=False))
                else:
                    self._post(LinkDisconnected(reason=f"scan failed: {exc}"))

        self._spawn(_run())

    def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is not None:
            self._spawn(scanner.stop())

    def connect(self, address: str) -> None:
        bleak = _bleak()
        client = bleak.BleakClient(
            address,
            disconnected_callback=self._on_disconnected,
            timeout=self.connect_timeout_s,
        )
        self._client = client

        async def _run() -> None:
            try:
                await client.connect()
            except Exception as exc:  # backends raise platform-specific errors
                if self._client is client:
                    self._client = None
                    self._post(LinkDisconnected(address=address, reason=f"connect failed: {exc}"))
                return
            if self._client is not client:
                # Disconnect was requested while the connect was in flight.
                await client.disconnect()
                return
            self._post(LinkConnected(address=address))

        self._spawn(_run())

    def discover(self, service_uuid: str, write_char_uuid: str) -> None:
        client = self._client

        async def _run() -> None:
            if client is None or not client.is_connected:
                self._post(ServiceDiscoveryFailed(reason="link is not connected"))
                return
            service = client.services.get_service(service_uuid)
            if service is None:
                self._post(ServiceDiscoveryFailed(reason=f"service {service_uuid} not found"))
                return
            characteristic = service.get_characteristic(write_char_uuid)
            if characteristic is None:
                self._post(
                    ServiceDiscoveryFailed(reason=f"characteristic {write_char_uuid} not found")
                )
                return
            self._post(ServicesResolved(write_channel=characteristic.uuid))

        self._spawn(_run())

    def disconnect(self, address: str) -> None:
        client, self._client = self._client, None
        if client is not None:
            self._spawn(client.disconnect())

    def write(self, write_channel: str, payload: bytes) -> None:
        client = self._client
        if client is None:
            LOGGER.debug("Dropping write of %d bytes: no client", len(payload))
            return
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        lock = self._write_lock

        async def _run() -> None:
            # Lock waiters are served in creation order, which keeps wire order.
            async with lock:
                try:
                    await client.write_gatt_char(write_channel, payload, response=False)
                except Exception as exc:
                    LOGGER.warning("BLE write failed: %s", exc)

        self._spawn(_run())

    def request_signal_strength(self, address: str) -> None:
        bleak = _bleak()

        async def _run() -> None:
            try:
                found = await bleak.BleakScanner.discover(
                    timeout=self.rssi_scan_s,
                    return_adv=True,
                )
            except bleak.exc.BleakError as exc:
                LOGGER.warning("Signal strength read failed: %s", exc)
                self._post(SignalStrengthRead(rssi=None))
                return
            rssi: int | None = None
            for found_address, (_, adv) in found.items():
                if found_address.upper() == address.upper():
                    rssi = adv.rssi
                    break
            self._post(SignalStrengthRead(rssi=rssi))

        self._spawn(_run())

    async def flush(self) -> None:
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    def _on_disconnected(self, client: Any) -> None:
        if client is not self._client:
            return
        self._client = None
        self._post(LinkDisconnected(address=client.address, reason="link lost"))

    def _post(self, event: LinkEvent) -> None:
        if self._sink is not None:
            self._sink(event)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
