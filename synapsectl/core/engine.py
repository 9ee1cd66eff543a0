"""Engine context shared by the CLI, the public API, and future UI frontends."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable

from synapsectl.core.bulk_text import CHAR_SPACING_S, BulkTextTransmitter
from synapsectl.core.connection import ConnectionManager, StateListener
from synapsectl.core.encoder import encode_payload, resolve_shortcut
from synapsectl.core.errors import (
    DiscoveryError,
    LinkDroppedError,
    LinkError,
    LinkTimeoutError,
    RadioOffError,
    SynapseError,
    UnsupportedShortcutError,
)
from synapsectl.core.jiggler import ActivityToggle
from synapsectl.core.log_sink import LogSink
from synapsectl.core.model import (
    Command,
    ConnectionState,
    EngineSnapshot,
    FeatureKind,
    Key,
    Shortcut,
)
from synapsectl.core.motion import MotionSmoother, MotionSource
from synapsectl.core.proximity import POLL_INTERVAL_S, ProximityMonitor
from synapsectl.core.settings_loader import SettingsStore, YamlSettingsStore
from synapsectl.transports.base import LinkEvent, LinkTransport, SignalStrengthRead

LOGGER = logging.getLogger(__name__)


class BridgeEngine:
    """Owns all bridge state for one accessory link.

    Transport callbacks go through `post_event` and are dispatched one at a
    time by the `run` driver. Everything else is called from the same loop.
    """

    def __init__(
        self,
        transport: LinkTransport,
        *,
        settings: SettingsStore | None = None,
        motion_source: MotionSource | None = None,
        log: LogSink | None = None,
        proximity_interval_s: float = POLL_INTERVAL_S,
        char_spacing_s: float = CHAR_SPACING_S,
    ) -> None:
        self.log = log or LogSink()
        self._settings = settings or YamlSettingsStore()
        self._transport = transport
        self._connection = ConnectionManager(transport, self.log)
        self._motion = (
            MotionSmoother(motion_source, self.send, self.log) if motion_source is not None else None
        )
        self._lock_key: Key | None = None
        self._proximity = ProximityMonitor(
            self._connection.request_signal_strength,
            self._trigger_lock,
            self.log,
            interval_s=proximity_interval_s,
        )
        self._bulk = BulkTextTransmitter(self.send, self.log, spacing_s=char_spacing_s)
        self._jiggler = ActivityToggle(self.send, self.log)
        self._connection.add_teardown_hook(self._teardown_features)

        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: int | None = None
        self._events: asyncio.Queue[LinkEvent] | None = None
        self._driver: asyncio.Task[None] | None = None
        transport.bind(self.post_event)

    # -- read-only views -------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def is_ready(self) -> bool:
        return self._connection.is_ready

    @property
    def motion(self) -> MotionSmoother | None:
        return self._motion

    @property
    def proximity(self) -> ProximityMonitor:
        return self._proximity

    def is_feature_active(self, kind: FeatureKind) -> bool:
        if kind is FeatureKind.MOTION:
            return self._motion is not None and self._motion.active
        if kind is FeatureKind.PROXIMITY:
            return self._proximity.armed
        return self._jiggler.enabled

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            state=self.state,
            connected=self.is_ready,
            device_name=self._connection.device_name,
            active_features=frozenset(kind for kind in FeatureKind if self.is_feature_active(kind)),
            jiggler_enabled=self._jiggler.enabled,
            log=self.log.entries(),
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._connection.subscribe(listener)

    # -- event driver ----------------------------------------------------

    def post_event(self, event: LinkEvent) -> None:
        """Queue a transport event for the driver; safe to call from any thread.

        Without a running driver the event is dispatched immediately, which is
        only correct when the caller is already on the engine's loop.
        """
        loop, events = self._loop, self._events
        if loop is None or events is None:
            self.dispatch(event)
        elif threading.get_ident() == self._loop_thread:
            events.put_nowait(event)
        else:
            loop.call_soon_threadsafe(events.put_nowait, event)

    def dispatch(self, event: LinkEvent) -> None:
        if isinstance(event, SignalStrengthRead):
            self._proximity.on_reading(event.rssi)
            return
        self._connection.handle(event)

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._events = asyncio.Queue()
        try:
            while True:
                event = await self._events.get()
                try:
                    self.dispatch(event)
                except SynapseError as exc:
                    self.log.append(f"Event {type(event).__name__} failed: {exc}", level=logging.ERROR)
                except Exception as exc:
                    LOGGER.exception("Unhandled error while handling %s", type(event).__name__)
                    self._connection.abort(f"{type(event).__name__} failed: {exc}")
        finally:
            self._loop = None
            self._loop_thread = None
            self._events = None

    def start(self) -> asyncio.Task[None]:
        if self._driver is None or self._driver.done():
            self._driver = asyncio.get_running_loop().create_task(self.run())
        return self._driver

    async def close(self) -> None:
        self.disconnect()
        await self._transport.flush()
        driver, self._driver = self._driver, None
        if driver is not None:
            driver.cancel()
            try:
                await driver
            except asyncio.CancelledError:
                pass

    # -- connection ------------------------------------------------------

    def connect(self) -> None:
        if not self._connection.is_active:
            self._connection.link = self._settings.load().link
        self._connection.connect()

    def disconnect(self) -> None:
        self._connection.disconnect()

    def toggle_connection(self) -> None:
        if self._connection.is_active:
            self.disconnect()
        else:
            self.connect()

    async def wait_until_ready(self, timeout_s: float) -> None:
        if self.is_ready:
            return
        if self.state is ConnectionState.RADIO_UNAVAILABLE:
            raise RadioOffError("Bluetooth is off")
        if not self._connection.is_active:
            raise LinkError("No connection attempt in progress")

        outcome: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _watch(previous: ConnectionState, current: ConnectionState) -> None:
            if outcome.done():
                return
            if current is ConnectionState.READY:
                outcome.set_result(None)
            elif current is ConnectionState.RADIO_UNAVAILABLE:
                outcome.set_exception(RadioOffError("Bluetooth turned off while connecting"))
            elif current is ConnectionState.IDLE:
                if previous is ConnectionState.DISCOVERING:
                    outcome.set_exception(DiscoveryError("Accessory service or write channel not found"))
                else:
                    outcome.set_exception(LinkDroppedError("Link closed before it became ready"))

        unsubscribe = self.subscribe(_watch)
        try:
            await asyncio.wait_for(outcome, timeout_s)
        except asyncio.TimeoutError:
            raise LinkTimeoutError(f"Accessory not ready after {timeout_s:g}s") from None
        finally:
            unsubscribe()

    async def flush(self) -> None:
        """Wait for pending typed characters and transport work to go out."""
        while self._bulk.pending:
            await asyncio.sleep(self._bulk.spacing_s)
        await self._transport.flush()

    # -- commands --------------------------------------------------------

    def send(self, command: Command) -> bool:
        payload = encode_payload(command)
        if payload is None:
            return False
        return self._connection.write(payload)

    def send_shortcut(self, shortcut: Shortcut) -> bool:
        platform = self._settings.load().target_platform
        try:
            key = resolve_shortcut(shortcut, platform)
        except UnsupportedShortcutError as exc:
            self.log.append(str(exc), level=logging.WARNING)
            return False
        return self.send(key)

    def type_text(self, text: str) -> int:
        if not self.is_ready:
            LOGGER.debug("Typing suppressed in state %s", self.state.value)
            return 0
        return self._bulk.transmit(text)

    def type_email(self) -> int:
        email = self._settings.load().user_email
        if not email:
            self.log.append("No email configured", level=logging.WARNING)
            return 0
        return self.type_text(email)

    # -- features --------------------------------------------------------

    def activate_feature(self, kind: FeatureKind) -> bool:
        if not self.is_ready:
            self.log.append(f"Connect before enabling {kind.value}", level=logging.WARNING)
            return False
        if kind is FeatureKind.MOTION:
            if self._motion is None:
                self.log.append("No motion sensor available", level=logging.WARNING)
                return False
            self._motion.activate(self._settings.load())
        elif kind is FeatureKind.PROXIMITY:
            self._lock_key = resolve_shortcut(Shortcut.LOCK, self._settings.load().target_platform)
            self._proximity.activate()
        elif not self._jiggler.enabled:
            self._jiggler.toggle()
        return True

    def deactivate_feature(self, kind: FeatureKind) -> None:
        if kind is FeatureKind.MOTION:
            if self._motion is not None:
                self._motion.deactivate()
        elif kind is FeatureKind.PROXIMITY:
            self._proximity.deactivate()
        elif self._jiggler.enabled:
            self._jiggler.toggle()

    def toggle_jiggler(self) -> bool:
        if not self.is_ready:
            self.log.append("Connect before enabling jiggler", level=logging.WARNING)
            return self._jiggler.enabled
        return self._jiggler.toggle()

    def _trigger_lock(self) -> None:
        if self._lock_key is not None:
            self.send(self._lock_key)

    def _teardown_features(self) -> None:
        if self._motion is not None:
            self._motion.deactivate()
        self._proximity.deactivate()
        self._bulk.cancel()
        self._jiggler.reset()
