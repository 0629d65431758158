"""Project configuration for cellarsync.

Settings come from an optional ``config.json``. The file is looked up at the
path given by ``CELLARSYNC_CONFIG`` and otherwise at the repository root. A
missing file means "all defaults"; a malformed one raises :class:`ConfigError`.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping

DEFAULT_DB_TIMEOUT = 30.0
CONFIG_ENV_VAR = "CELLARSYNC_CONFIG"
DB_PATH_ENV_VAR = "CELLARSYNC_DB"

_REPO_ROOT = Path(__file__).resolve().parents[3]


class ConfigError(ValueError):
    """Raised when ``config.json`` exists but cannot be used."""


def config_file(
    config_path: Path | str | None = None, environ: Mapping[str, str] | None = None
) -> Path:
    env = os.environ if environ is None else environ
    if config_path is not None:
        return Path(config_path)
    if env.get(CONFIG_ENV_VAR):
        return Path(env[CONFIG_ENV_VAR])
    return _REPO_ROOT / "config.json"


def load_config(config_path: Path | str | None = None) -> Dict[str, Any]:
    """Return the parsed ``config.json`` or ``{}`` when there is none."""
    path = config_file(config_path)
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def load_section(name: str, config_path: Path | str | None = None) -> Dict[str, Any]:
    """One top-level section of the configuration; non-objects read as empty."""
    section = load_config(config_path).get(name, {})
    return section if isinstance(section, dict) else {}


def get_path_config(
    config_path: Path | str | None = None, environ: Mapping[str, str] | None = None
) -> Dict[str, Path]:
    """Resolve ``db_path`` and ``logs_dir``.

    Relative paths are taken from the config file's directory. ``CELLARSYNC_DB``
    overrides the database path.
    """
    env = os.environ if environ is None else environ
    path = config_file(config_path, env)
    root = path.parent
    paths_cfg = load_section("paths", path)
    configured = {
        "db_path": env.get(DB_PATH_ENV_VAR) or paths_cfg.get("db_path", "cellarsync.db"),
        "logs_dir": paths_cfg.get("logs_dir", "logs"),
    }
    resolved: Dict[str, Path] = {}
    for key, value in configured.items():
        candidate = Path(value).expanduser()
        resolved[key] = candidate if candidate.is_absolute() else (root / candidate).resolve()
    return resolved


def get_default_timeout(config_path: Path | str | None = None) -> float:
    """SQLite busy timeout in seconds, ``db_timeout_seconds`` in the config."""
    try:
        return float(load_config(config_path).get("db_timeout_seconds", DEFAULT_DB_TIMEOUT))
    except (TypeError, ValueError):
        return DEFAULT_DB_TIMEOUT
