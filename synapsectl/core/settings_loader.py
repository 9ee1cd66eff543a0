"""Settings loading and validation for the YAML settings file."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Protocol

import yaml
from jsonschema import ValidationError, validators

from synapsectl.core.errors import SettingsLoadError, SettingsValidationError
from synapsectl.core.model import ControlSettings, LinkSpec, Platform

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise SettingsValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


class SettingsStore(Protocol):
    def load(self) -> ControlSettings:
        """Return the current settings. Called each time a feature activates."""


@dataclass(frozen=True)
class StaticSettingsStore:
    settings: ControlSettings = ControlSettings()

    def load(self) -> ControlSettings:
        return self.settings


class YamlSettingsStore:
    """Reads the settings file on every `load`, so edits apply on next activation."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or settings_path()

    def load(self) -> ControlSettings:
        return load_settings(self.path)


def settings_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "synapsectl/settings.yaml"


def _load_schema_validator() -> Any:
    schema_text = resources.files("synapsectl.schemas").joinpath("settings.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsLoadError(f"Could not read settings file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise SettingsValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise SettingsValidationError(f"Settings file {path} must contain a mapping at root")
    return loaded


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise SettingsValidationError(f"{context} must be a 128-bit UUID string")
    return normalized


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on"}:
            return True
        if lowered in {"false", "no", "off"}:
            return False
    raise SettingsValidationError(f"{context} must be boolean true/false")


def build_settings(doc: dict[str, Any], source: Path | str = "<settings>") -> ControlSettings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise SettingsValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    defaults = ControlSettings()
    link_doc = doc.get("link", {})
    link = LinkSpec(
        service_uuid=_normalize_uuid(
            link_doc.get("service_uuid", defaults.link.service_uuid),
            context="link.service_uuid",
        ),
        write_char_uuid=_normalize_uuid(
            link_doc.get("write_char_uuid", defaults.link.write_char_uuid),
            context="link.write_char_uuid",
        ),
    )
    return ControlSettings(
        target_platform=Platform(doc.get("target_platform", defaults.target_platform.value)),
        user_email=doc.get("user_email", defaults.user_email).strip(),
        gyro_sensitivity=float(doc.get("gyro_sensitivity", defaults.gyro_sensitivity)),
        invert_x=_normalize_bool(doc.get("invert_x", defaults.invert_x), context="invert_x"),
        invert_y=_normalize_bool(doc.get("invert_y", defaults.invert_y), context="invert_y"),
        link=link,
    )


def load_settings(path: Path | None = None) -> ControlSettings:
    path = path or settings_path()
    if not path.exists():
        LOGGER.debug("No settings file at %s, using defaults", path)
        return ControlSettings()
    return build_settings(_read_yaml(path), path)
