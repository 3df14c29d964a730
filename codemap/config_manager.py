"""Configuration manager for codemap using TOML files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from . import config
from .config import EngineConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)


def _config_path(path: Optional[Path]) -> Path:
    return path if path is not None else config.CONFIG_FILE


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    Returns an empty dict when the file does not exist or cannot be parsed.
    """
    config_file = _config_path(path)
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read config file %s: %s", config_file, exc)
        return {}


def load_engine_config(path: Optional[Path] = None) -> EngineConfig:
    """Load engine settings from the ``[engine]`` section.

    Falls back to defaults for every key the file does not set.
    """
    section = load_full_config(path).get("engine", {})
    if not isinstance(section, dict):
        logger.warning("Ignoring malformed [engine] section in config file")
        section = {}
    return EngineConfig.from_mapping(section)


def save_engine_config(engine_config: EngineConfig, path: Optional[Path] = None) -> Path:
    """Write engine settings to the ``[engine]`` section.

    Preserves other sections in the file.
    """
    config_file = _config_path(path)
    full = load_full_config(config_file)
    full["engine"] = engine_config.to_dict()
    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w", encoding="utf-8") as f:
            toml.dump(full, f)
    except OSError as exc:
        raise ConfigError(f"Could not write config file {config_file}: {exc}") from exc
    return config_file


def set_engine_value(key: str, raw_value: str, path: Optional[Path] = None) -> EngineConfig:
    """Parse *raw_value* as a TOML value and store it under ``[engine].key``."""
    name = config.setting_name(key)
    if name is None:
        raise ConfigError(f"Unknown engine setting '{key}'")
    try:
        value = toml.loads(f"value = {raw_value}")["value"]
    except ValueError:
        # bare words are stored as strings
        value = raw_value
    value = _coerce(name, value)
    updated = load_engine_config(path).merged(**{name: value})
    save_engine_config(updated, path)
    return updated


def _coerce(name: str, value: Any) -> Any:
    """Check *value* against the type of the setting's default."""
    default = getattr(EngineConfig(), name)
    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(default, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if ok:
            value = float(value)
    elif isinstance(default, list):
        ok = isinstance(value, list) and all(isinstance(v, str) for v in value)
    else:
        ok = isinstance(value, type(default))
    if not ok:
        raise ConfigError(
            f"Invalid value for '{name}': expected {type(default).__name__}, got {value!r}"
        )
    return value
