from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CURRENT_VERSION = "3"
DEFAULT_USER_EMAIL = "player@localhost"


class ConfigError(ValueError):
    """Raised when the environment or the YAML configuration is invalid."""


@dataclass
class Settings:
    drive_dir: Path
    codex_id: str = ""
    master_ver_id: str = ""
    current_version: str = DEFAULT_CURRENT_VERSION
    user_email: str = DEFAULT_USER_EMAIL
    properties_path: Path = Path("properties.json")
    # kind -> convention -> canonical field -> raw column tag
    field_maps: Dict[str, Dict[str, Dict[str, str]]] = field(default_factory=dict)


def _normalize_field_maps(data: Any, *, context: str) -> Dict[str, Dict[str, Dict[str, str]]]:
    if not isinstance(data, dict):
        raise ConfigError(f"{context} must be a mapping keyed by catalog kind.")
    normalized: Dict[str, Dict[str, Dict[str, str]]] = {}
    for kind, conventions in data.items():
        if not isinstance(conventions, dict):
            raise ConfigError(f"Field maps for '{kind}' must be keyed by convention (db, custom).")
        normalized[str(kind)] = {}
        for convention, mapping in conventions.items():
            if not isinstance(mapping, dict):
                raise ConfigError(
                    f"Field map '{kind}.{convention}' must be an object of canonical->column tag pairs."
                )
            normalized[str(kind)][str(convention)] = {str(k): str(v) for k, v in mapping.items()}
    return normalized


def load_field_maps(path: Path) -> Dict[str, Dict[str, Dict[str, str]]]:
    """Read the ``field_maps`` section of a YAML config file."""

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a YAML mapping.")
    return _normalize_field_maps(raw.get("field_maps") or {}, context="field_maps")


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env
    drive_dir = env.get("FLEX_DRIVE_DIR")
    if not drive_dir:
        raise ConfigError("FLEX_DRIVE_DIR must point at the directory holding your workbooks.")
    drive_path = Path(drive_dir).expanduser()

    config_path = env.get("FLEX_CONFIG")
    field_maps = load_field_maps(Path(config_path).expanduser()) if config_path else {}

    return Settings(
        drive_dir=drive_path,
        codex_id=env.get("FLEX_CODEX_ID", ""),
        master_ver_id=env.get("FLEX_MASTER_VER_ID", ""),
        current_version=env.get("FLEX_CURRENT_VERSION", DEFAULT_CURRENT_VERSION),
        user_email=env.get("FLEX_USER_EMAIL", DEFAULT_USER_EMAIL),
        properties_path=Path(env.get("FLEX_PROPERTIES_PATH") or drive_path / "properties.json"),
        field_maps=field_maps,
    )
