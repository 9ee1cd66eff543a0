"""Core data models used across the engine, transports, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

DEFAULT_SERVICE_UUID = "4fafc201-1fb5-459e-8fcc-c5c9c331914b"
DEFAULT_WRITE_CHAR_UUID = "beb5483e-36e1-4688-b7f5-ea07361b26a8"


class ConnectionState(str, Enum):
    IDLE = "idle"
    RADIO_UNAVAILABLE = "radio_unavailable"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    DISCOVERING = "discovering"
    READY = "ready"
    DISCONNECTING = "disconnecting"


class Platform(str, Enum):
    WINDOWS = "windows"
    MACOS = "macos"


class MouseButton(str, Enum):
    LEFT = "LEFT"
    RIGHT = "RIGHT"


class MediaAction(str, Enum):
    PLAY = "PLAY"
    VOL_UP = "VOL_UP"
    VOL_DN = "VOL_DN"
    MUTE = "MUTE"
    NEXT = "NEXT"
    PREV = "PREV"


class Shortcut(str, Enum):
    LOCK = "lock"
    CLOSE_APP = "close_app"
    COPY = "copy"
    PASTE = "paste"


class FeatureKind(str, Enum):
    MOTION = "motion"
    PROXIMITY = "proximity"
    JIGGLER = "jiggler"


BACKSPACE = "\x08"


@dataclass(frozen=True)
class Key:
    code: str


@dataclass(frozen=True)
class Move:
    dx: int
    dy: int


@dataclass(frozen=True)
class Click:
    button: MouseButton


@dataclass(frozen=True)
class Config:
    name: str
    enabled: bool


@dataclass(frozen=True)
class Media:
    action: MediaAction


@dataclass(frozen=True)
class Char:
    text: str


Command = Key | Move | Click | Config | Media | Char


@dataclass(frozen=True)
class LinkSpec:
    service_uuid: str = DEFAULT_SERVICE_UUID
    write_char_uuid: str = DEFAULT_WRITE_CHAR_UUID


@dataclass(frozen=True)
class ControlSettings:
    target_platform: Platform = Platform.WINDOWS
    user_email: str = ""
    gyro_sensitivity: float = 100.0
    invert_x: bool = False
    invert_y: bool = False
    link: LinkSpec = field(default_factory=LinkSpec)


@dataclass(frozen=True)
class DeviceHandle:
    address: str
    name: str
    write_channel: str | None = None


@dataclass(frozen=True)
class RotationSample:
    """Rotation rate around each device axis, in radians per second."""

    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    message: str


@dataclass(frozen=True)
class EngineSnapshot:
    state: ConnectionState
    connected: bool
    device_name: str | None
    active_features: frozenset[FeatureKind]
    jiggler_enabled: bool
    log: tuple[LogEntry, ...]
