"""Scripting entry point: connect to the accessory, send commands, disconnect.

The command types, settings stores and transports needed to drive a session
are re-exported here so scripts only import `synapsectl.api`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from synapsectl.core.engine import BridgeEngine
from synapsectl.core.errors import (
    CommandEncodingError,
    DiscoveryError,
    LinkDroppedError,
    LinkError,
    LinkTimeoutError,
    RadioOffError,
    SettingsLoadError,
    SettingsValidationError,
    SynapseError,
    UnsupportedShortcutError,
)
from synapsectl.core.log_sink import LogSink
from synapsectl.core.model import (
    BACKSPACE,
    Char,
    Click,
    Command,
    Config,
    ConnectionState,
    ControlSettings,
    EngineSnapshot,
    FeatureKind,
    Key,
    LinkSpec,
    LogEntry,
    Media,
    MediaAction,
    MouseButton,
    Move,
    Platform,
    RotationSample,
    Shortcut,
)
from synapsectl.core.motion import MotionSource, ReplayMotionSource
from synapsectl.core.settings_loader import SettingsStore, StaticSettingsStore, YamlSettingsStore
from synapsectl.transports.base import LinkTransport
from synapsectl.transports.ble_gatt import BLELinkTransport

__all__ = [
    "SynapseError",
    "SettingsLoadError",
    "SettingsValidationError",
    "CommandEncodingError",
    "UnsupportedShortcutError",
    "LinkError",
    "RadioOffError",
    "DiscoveryError",
    "LinkDroppedError",
    "LinkTimeoutError",
    "BACKSPACE",
    "Char",
    "Click",
    "Command",
    "Config",
    "ConnectionState",
    "ControlSettings",
    "EngineSnapshot",
    "FeatureKind",
    "Key",
    "LinkSpec",
    "LogEntry",
    "Media",
    "MediaAction",
    "MouseButton",
    "Move",
    "Platform",
    "RotationSample",
    "Shortcut",
    "BridgeEngine",
    "BLELinkTransport",
    "LinkTransport",
    "LogSink",
    "MotionSource",
    "ReplayMotionSource",
    "SettingsStore",
    "StaticSettingsStore",
    "YamlSettingsStore",
    "Client",
]

DEFAULT_CONNECT_TIMEOUT_S = 20.0


class Client:
    """Public client for driving an accessory from scripts and services.

    A `Client` builds a `BridgeEngine` over the BLE transport and the user
    settings file. `session()` connects, waits for the write channel, and
    always disconnects on exit.
    """

    def __init__(
        self,
        *,
        transport: LinkTransport | None = None,
        settings: SettingsStore | None = None,
        motion_source: MotionSource | None = None,
    ) -> None:
        self._transport = transport or BLELinkTransport()
        self._settings = settings or YamlSettingsStore()
        self._motion_source = motion_source

    @property
    def settings(self) -> ControlSettings:
        return self._settings.load()

    def build_engine(self) -> BridgeEngine:
        return BridgeEngine(
            self._transport,
            settings=self._settings,
            motion_source=self._motion_source,
        )

    @asynccontextmanager
    async def session(self, *, timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S) -> AsyncIterator[BridgeEngine]:
        engine = self.build_engine()
        engine.start()
        try:
            engine.connect()
            await engine.wait_until_ready(timeout_s)
            yield engine
            await engine.flush()
        finally:
            await engine.close()
