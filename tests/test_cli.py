from __future__ import annotations

from pathlib import Path

import pytest
from conftest import AutoLinkTransport
from typer.testing import CliRunner

from synapsectl import cli
from synapsectl.api import Client
from synapsectl.core.model import ControlSettings, Platform
from synapsectl.core.settings_loader import StaticSettingsStore

runner = CliRunner()


@pytest.fixture
def transport(monkeypatch: pytest.MonkeyPatch) -> AutoLinkTransport:
    transport = AutoLinkTransport()
    settings = StaticSettingsStore(ControlSettings(target_platform=Platform.MACOS, user_email="me@example.com"))

    def _fake_client(**kwargs) -> Client:
        return Client(transport=transport, settings=settings, **kwargs)

    monkeypatch.setattr(cli, "_build_client", _fake_client)
    return transport


def test_key_command(transport: AutoLinkTransport) -> None:
    result = runner.invoke(cli.app, ["key", "esc"])
    assert result.exit_code == 0
    assert "Sent KEY:ESC to Synapse Dongle v1" in result.stdout
    assert transport.writes == ["KEY:ESC"]


def test_media_command(transport: AutoLinkTransport) -> None:
    result = runner.invoke(cli.app, ["media", "vol_up"])
    assert result.exit_code == 0
    assert transport.writes == ["MEDIA:VOL_UP"]


def test_click_defaults_to_left(transport: AutoLinkTransport) -> None:
    result = runner.invoke(cli.app, ["click"])
    assert result.exit_code == 0
    assert transport.writes == ["CLICK:LEFT"]


def test_shortcut_lock_follows_platform(transport: AutoLinkTransport) -> None:
    result = runner.invoke(cli.app, ["shortcut", "lock"])
    assert result.exit_code == 0
    assert transport.writes == ["KEY:CTRL+CMD+Q"]


def test_unsupported_shortcut_is_an_error(transport: AutoLinkTransport) -> None:
    result = runner.invoke(cli.app, ["shortcut", "copy"])
    assert result.exit_code == 1
    assert "not supported" in result.stderr
    assert transport.writes == []


def test_type_and_email(transport: AutoLinkTransport) -> None:
    result = runner.invoke(cli.app, ["type", "hi"])
    assert result.exit_code == 0
    assert "Typed 2 characters" in result.stdout

    result = runner.invoke(cli.app, ["email"])
    assert result.exit_code == 0
    assert "".join(transport.writes) == "hime@example.com"


def test_jiggler_off_sends_config(transport: AutoLinkTransport) -> None:
    result = runner.invoke(cli.app, ["jiggler", "off"])
    assert result.exit_code == 0
    assert transport.writes == ["CFG:Jiggler:0"]


def test_gyro_replay(transport: AutoLinkTransport, tmp_path: Path) -> None:
    samples = tmp_path / "tilt.csv"
    samples.write_text("0.0,0.5\n0.0,0.5\n0.0,0.0\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["gyro", "--replay", str(samples)])
    assert result.exit_code == 0
    assert "Replayed 3 samples" in result.stdout
    assert transport.writes == ["MOVE:50:0", "MOVE:50:0"]


def test_radio_off_error_is_clean(monkeypatch: pytest.MonkeyPatch) -> None:
    transport = AutoLinkTransport(powered_on=False)
    monkeypatch.setattr(
        cli,
        "_build_client",
        lambda **kwargs: Client(transport=transport, settings=StaticSettingsStore(), **kwargs),
    )

    result = runner.invoke(cli.app, ["key", "esc"])
    assert result.exit_code == 1
    assert "Error: Bluetooth is off" in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_settings_command(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    path = tmp_path / "synapsectl" / "settings.yaml"
    path.parent.mkdir(parents=True)
    path.write_text("target_platform: macos\ngyro_sensitivity: 55\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["settings"])
    assert result.exit_code == 0
    assert "target_platform: macos" in result.stdout
    assert "gyro_sensitivity: 55" in result.stdout


def test_settings_command_reports_invalid_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    path = tmp_path / "synapsectl" / "settings.yaml"
    path.parent.mkdir(parents=True)
    path.write_text("gyro_sensitivity: 1000\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["settings"])
    assert result.exit_code == 1
    assert "Error: Schema validation failed" in result.stderr


def test_proximity_help_mentions_advertising_limit() -> None:
    result = runner.invoke(cli.app, ["proximity", "--help"])

    assert result.exit_code == 0
    assert "advertisements" in result.output
