"""Configuration helpers for moodle-autopilot."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from . import settings
from .core.errors import LoadError


PACKAGE_ROOT = Path(__file__).parent.parent.parent
LOCAL_CONFIG_PATH = PACKAGE_ROOT / "config.local.yaml"

DEFAULT_CONFIG = {
    "moodle": {
        "url": None,
        "token_env": settings.moodle_token_env,
        "timeout": settings.moodle_timeout,
    },
    "downloads_dir": str(settings.downloads_dir),
    "server": {
        "host": settings.server_host,
        "port": settings.server_port,
    },
}


def config_defaults() -> dict:
    """Return default configuration values."""
    return copy.deepcopy(DEFAULT_CONFIG)


def config_schema() -> dict:
    """Return JSON Schema for configuration."""
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": {
            "moodle": {
                "type": "object",
                "properties": {
                    "url": {"type": ["string", "null"]},
                    "token_env": {"type": "string"},
                    "timeout": {"type": "number", "exclusiveMinimum": 0},
                },
                "additionalProperties": False,
            },
            "downloads_dir": {"type": "string"},
            "server": {
                "type": "object",
                "properties": {
                    "host": {"type": "string"},
                    "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                },
                "additionalProperties": False,
            },
        },
        "additionalProperties": False,
    }


def _deep_merge(base: dict, update: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_config_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise LoadError(f"Config file is not valid YAML: {path}", errors=[str(e)]) from e
    if not isinstance(data, dict):
        raise LoadError(f"Config file must be a mapping: {path}")
    return data


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load resolved configuration (defaults merged with config file)."""
    path = config_path or LOCAL_CONFIG_PATH
    base = config_defaults()
    file_config = _load_config_file(path)
    return _deep_merge(base, file_config)


def resolve_token(config: dict) -> str | None:
    """Read the access token from the environment variable the config names."""
    token_env = config.get("moodle", {}).get("token_env") or settings.moodle_token_env
    return os.environ.get(token_env)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config_dict(data: Any) -> list[str]:
    """Validate a config dict against the schema."""
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Config must be a mapping/object"]

    allowed_top = {"moodle", "downloads_dir", "server"}
    for key in data:
        if key not in allowed_top:
            errors.append(f"Unknown config key: {key}")

    if "moodle" in data and isinstance(data["moodle"], dict):
        for key in data["moodle"]:
            if key not in {"url", "token_env", "timeout"}:
                errors.append(f"Unknown moodle key: {key}")
        url = data["moodle"].get("url")
        if url is not None and not isinstance(url, str):
            errors.append("moodle.url must be a string")
        timeout = data["moodle"].get("timeout")
        if timeout is not None and not (_is_number(timeout) and timeout > 0):
            errors.append("moodle.timeout must be a positive number")
    elif "moodle" in data:
        errors.append("moodle must be an object")

    if "server" in data and isinstance(data["server"], dict):
        for key in data["server"]:
            if key not in {"host", "port"}:
                errors.append(f"Unknown server key: {key}")
        port = data["server"].get("port")
        if port is not None and (not _is_int(port) or not (1 <= port <= 65535)):
            errors.append("server.port must be between 1 and 65535")
    elif "server" in data:
        errors.append("server must be an object")

    return errors


def validate_config_file(config_path: Optional[Path] = None) -> list[str]:
    """Validate the config file. Returns list of errors (empty = valid)."""
    path = config_path or LOCAL_CONFIG_PATH
    if not path.exists():
        return []
    try:
        data = _load_config_file(path)
    except LoadError as e:
        return [e.message, *e.errors]
    return validate_config_dict(data)
