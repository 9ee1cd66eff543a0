"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer

from synapsectl.api import Client
from synapsectl.core.engine import BridgeEngine
from synapsectl.core.errors import SynapseError
from synapsectl.core.jiggler import JIGGLER_CONFIG_NAME
from synapsectl.core.model import (
    Click,
    Command,
    Config,
    FeatureKind,
    Key,
    Media,
    MediaAction,
    MouseButton,
    Shortcut,
)
from synapsectl.core.motion import ReplayMotionSource, load_samples
from synapsectl.core.settings_loader import load_settings, settings_path

app = typer.Typer(help="Drive a Synapse BLE accessory as keyboard, mouse and remote")

T = TypeVar("T")

TIMEOUT_OPTION = typer.Option(20.0, "--timeout", help="Seconds to wait for the accessory")


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Verbose logging")) -> None:
    log_level = logging.DEBUG if debug else logging.WARNING
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    logging.getLogger("synapsectl").setLevel(log_level)


def _build_client(**kwargs) -> Client:
    return Client(**kwargs)


def _run(action: Callable[[BridgeEngine], Awaitable[T]], *, timeout_s: float, client: Client | None = None) -> T:
    client = client or _build_client()

    async def _session() -> T:
        async with client.session(timeout_s=timeout_s) as engine:
            return await action(engine)

    return asyncio.run(_session())


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@app.command("settings")
def show_settings() -> None:
    """Show the resolved settings."""
    try:
        settings = load_settings()
    except SynapseError as exc:
        raise _fail(exc) from None
    typer.echo(f"File: {settings_path()}")
    typer.echo(f"  target_platform: {settings.target_platform.value}")
    typer.echo(f"  user_email: {settings.user_email or '<unset>'}")
    typer.echo(f"  gyro_sensitivity: {settings.gyro_sensitivity:g}")
    typer.echo(f"  invert_x: {str(settings.invert_x).lower()}")
    typer.echo(f"  invert_y: {str(settings.invert_y).lower()}")
    typer.echo(f"  service_uuid: {settings.link.service_uuid}")
    typer.echo(f"  write_char_uuid: {settings.link.write_char_uuid}")


@app.command("key")
def send_key(name: str, timeout: float = TIMEOUT_OPTION) -> None:
    """Press a key, e.g. ESC, TAB, WIN, ALT."""
    _send_one(Key(name.upper()), f"KEY:{name.upper()}", timeout)


@app.command("click")
def send_click(
    button: MouseButton = typer.Argument(MouseButton.LEFT, case_sensitive=False),
    timeout: float = TIMEOUT_OPTION,
) -> None:
    """Click a mouse button."""
    _send_one(Click(button), f"CLICK:{button.value}", timeout)


@app.command("media")
def send_media(
    action: MediaAction = typer.Argument(..., case_sensitive=False),
    timeout: float = TIMEOUT_OPTION,
) -> None:
    """Send a media control (PLAY, VOL_UP, VOL_DN, MUTE, NEXT, PREV)."""
    _send_one(Media(action), f"MEDIA:{action.value}", timeout)


def _send_one(command: Command, label: str, timeout: float) -> None:
    async def _action(engine: BridgeEngine) -> str | None:
        engine.send(command)
        return engine.snapshot().device_name

    try:
        device = _run(_action, timeout_s=timeout)
    except SynapseError as exc:
        raise _fail(exc) from None
    typer.echo(f"Sent {label} to {device}")


@app.command("shortcut")
def send_shortcut(
    shortcut: Shortcut = typer.Argument(..., case_sensitive=False),
    timeout: float = TIMEOUT_OPTION,
) -> None:
    """Send a platform shortcut (lock, close_app)."""

    async def _action(engine: BridgeEngine) -> bool:
        return engine.send_shortcut(shortcut)

    try:
        sent = _run(_action, timeout_s=timeout)
    except SynapseError as exc:
        raise _fail(exc) from None
    if not sent:
        typer.echo(f"Error: shortcut '{shortcut.value}' is not supported", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Sent {shortcut.value} shortcut")


@app.command("type")
def type_text(text: str, timeout: float = TIMEOUT_OPTION) -> None:
    """Type TEXT on the computer, one character at a time."""

    async def _action(engine: BridgeEngine) -> int:
        return engine.type_text(text)

    try:
        count = _run(_action, timeout_s=timeout)
    except SynapseError as exc:
        raise _fail(exc) from None
    typer.echo(f"Typed {count} characters")


@app.command("email")
def type_email(timeout: float = TIMEOUT_OPTION) -> None:
    """Type the configured user_email."""

    async def _action(engine: BridgeEngine) -> int:
        return engine.type_email()

    try:
        count = _run(_action, timeout_s=timeout)
    except SynapseError as exc:
        raise _fail(exc) from None
    if count == 0:
        typer.echo("Error: no user_email configured", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Typed {count} characters")


@app.command("jiggler")
def set_jiggler(enabled: bool = typer.Argument(..., help="on/off"), timeout: float = TIMEOUT_OPTION) -> None:
    """Turn the accessory's anti-sleep mouse jiggler on or off."""

    async def _action(engine: BridgeEngine) -> bool:
        if enabled:
            return engine.activate_feature(FeatureKind.JIGGLER)
        # A fresh session starts with the flag cleared, so send the off command directly.
        return engine.send(Config(JIGGLER_CONFIG_NAME, False))

    try:
        _run(_action, timeout_s=timeout)
    except SynapseError as exc:
        raise _fail(exc) from None
    typer.echo(f"Jiggler {'on' if enabled else 'off'}")


@app.command("proximity")
def watch_proximity(timeout: float = TIMEOUT_OPTION) -> None:
    """Lock the computer once the phone walks out of range, then exit.

    Signal strength comes from the accessory's advertisements. Accessories that
    stop advertising while connected give no readings, so the lock never fires.
    """

    async def _action(engine: BridgeEngine) -> bool:
        if not engine.activate_feature(FeatureKind.PROXIMITY):
            return False
        while engine.proximity.armed and engine.is_ready:
            await asyncio.sleep(engine.proximity.interval_s)
        return engine.is_ready

    try:
        locked = _run(_action, timeout_s=timeout)
    except SynapseError as exc:
        raise _fail(exc) from None
    except KeyboardInterrupt:
        raise typer.Exit(code=130) from None
    if not locked:
        typer.echo("Error: link dropped before the lock fired", err=True)
        raise typer.Exit(code=1)
    typer.echo("Signal weak, workstation locked")


@app.command("gyro")
def replay_gyro(
    replay: Path = typer.Option(..., "--replay", exists=True, dir_okay=False, help="CSV of x,y,z rotation rates"),
    timeout: float = TIMEOUT_OPTION,
) -> None:
    """Move the pointer from recorded rotation-rate samples."""
    try:
        source = ReplayMotionSource(load_samples(replay))
    except SynapseError as exc:
        raise _fail(exc) from None

    async def _action(engine: BridgeEngine) -> int:
        if not engine.activate_feature(FeatureKind.MOTION):
            return 0
        await source.wait_finished()
        engine.deactivate_feature(FeatureKind.MOTION)
        return len(source)

    try:
        count = _run(_action, timeout_s=timeout, client=_build_client(motion_source=source))
    except SynapseError as exc:
        raise _fail(exc) from None
    typer.echo(f"Replayed {count} samples")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
