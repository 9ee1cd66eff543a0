"""Command to wire-text encoding."""

from __future__ import annotations

import re

from synapsectl.core.errors import CommandEncodingError, UnsupportedShortcutError
from synapsectl.core.model import (
    Char,
    Click,
    Command,
    Config,
    Key,
    Media,
    Move,
    Platform,
    Shortcut,
)

_TOKEN_RE = re.compile(r"^[^\s:]+$")

_SHORTCUT_KEYS: dict[Shortcut, dict[Platform, str]] = {
    Shortcut.LOCK: {
        Platform.WINDOWS: "WIN+L",
        Platform.MACOS: "CTRL+CMD+Q",
    },
    Shortcut.CLOSE_APP: {
        Platform.WINDOWS: "ALT+F4",
        Platform.MACOS: "CMD+Q",
    },
}


def _token(value: str, *, context: str) -> str:
    if not _TOKEN_RE.match(value):
        raise CommandEncodingError(
            f"{context} must be non-empty and contain no ':' or whitespace, got {value!r}"
        )
    return value


def encode(command: Command) -> str | None:
    """Return the wire text for `command`, or None when there is nothing to send."""
    if isinstance(command, Key):
        return f"KEY:{_token(command.code, context='Key code')}"
    if isinstance(command, Move):
        if command.dx == 0 and command.dy == 0:
            return None
        return f"MOVE:{int(command.dx)}:{int(command.dy)}"
    if isinstance(command, Click):
        return f"CLICK:{command.button.value}"
    if isinstance(command, Config):
        return f"CFG:{_token(command.name, context='Config name')}:{int(command.enabled)}"
    if isinstance(command, Media):
        return f"MEDIA:{command.action.value}"
    if isinstance(command, Char):
        if len(command.text) != 1:
            raise CommandEncodingError(
                f"Raw character command needs exactly one code point, got {command.text!r}"
            )
        return command.text
    raise CommandEncodingError(f"Unknown command type {type(command).__name__}")


def encode_payload(command: Command) -> bytes | None:
    text = encode(command)
    return text.encode("utf-8") if text is not None else None


def resolve_shortcut(shortcut: Shortcut, platform: Platform) -> Key:
    """Map a platform shortcut onto the single key combination the accessory understands."""
    keys = _SHORTCUT_KEYS.get(shortcut)
    if keys is None:
        raise UnsupportedShortcutError(
            f"Shortcut '{shortcut.value}' is not supported by this protocol version"
        )
    return Key(keys[platform])
