"""Configuration file management for rangexp.

Reads and writes ~/.rangexp/config.json for settings that don't belong in the DB
(database location, log level).
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

from rangexp.db import DEFAULT_DB_PATH

DEFAULT_CONFIG_PATH: Path = Path.home() / ".rangexp" / "config.json"
DEFAULT_LOG_LEVEL = "WARNING"


def load_config(config_path: Path | None = None) -> dict:
    """Load config from JSON file. Returns {} if file missing or invalid."""
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}


def save_config(data: dict, config_path: Path | None = None) -> None:
    """Write config dict to JSON file. Creates parent dirs if needed."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def get_db_path(config_path: Path | None = None) -> Path:
    """Return the configured database path, or the default."""
    raw = load_config(config_path).get("db_path")
    if raw:
        return Path(raw).expanduser()
    return DEFAULT_DB_PATH


def get_log_level(config_path: Path | None = None) -> str:
    """Return the configured log level name, upper-cased."""
    raw = load_config(config_path).get("log_level")
    if isinstance(raw, str) and raw.strip():
        return raw.strip().upper()
    return DEFAULT_LOG_LEVEL


def set_db_path(db_path: Path, config_path: Path | None = None) -> None:
    """Persist the database path to config."""
    config = load_config(config_path)
    config["db_path"] = str(db_path)
    save_config(config, config_path)


def set_log_level(level: str, config_path: Path | None = None) -> None:
    """Persist the default log level. Raises ValueError for unknown level names."""
    name = level.strip().upper()
    if not isinstance(logging.getLevelName(name), int):
        raise ValueError(f"unknown log level: {level!r}")
    config = load_config(config_path)
    config["log_level"] = name
    save_config(config, config_path)
