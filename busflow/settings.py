"""Bus and workflow settings: built-in defaults overlaid with config/settings.yaml.

The config directory can be moved with the BUSFLOW_CONFIG_DIR environment
variable. Settings are plain nested dicts; read them with get_setting().
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "BUSFLOW_CONFIG_DIR"
SETTINGS_FILE = "settings.yaml"

_DEFAULTS: dict[str, Any] = {
    "event_bus": {
        "debug": False,
        "max_history_size": 100,
    },
    "workflow": {
        # STATE.CHANGE values that end an execution; anything else is progress
        "success_states": ["success"],
        "error_states": ["error", "failure"],
    },
    "logging": {
        "file": "logs/busflow.log",
        "level": "INFO",
        "log_to_console": False,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
    },
}

_cached: dict[str, Any] | None = None


def _overlay(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively apply overlay onto base in place. None values keep the default."""
    for key, value in overlay.items():
        if value is None:
            continue
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _overlay(current, value)
        else:
            base[key] = value
    return base


def _default_config_dir() -> Path:
    env_dir = os.environ.get(CONFIG_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return Path(__file__).resolve().parent.parent / "config"


def get_default_settings() -> dict[str, Any]:
    """Fresh copy of the built-in defaults."""
    return copy.deepcopy(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Read one value such as "event_bus.max_history_size" or "workflow.error_states".

    EventBus.from_settings and WorkflowConfig.from_settings go through this, so
    a section missing from settings.yaml falls back to their own defaults.
    """
    node: Any = settings
    for key in path.split("."):
        try:
            node = node[key]
        except (KeyError, TypeError):
            return default
    return node


def reload_settings() -> None:
    """Drop the cached settings.

    Buses already built keep their configuration; only get_default_bus() after
    reset_default_bus(), or a new EventBus.from_settings(), sees the new file.
    """
    global _cached
    _cached = None


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Defaults merged with <config_dir>/settings.yaml, cached after the first call.

    A missing file means defaults; an unreadable or malformed one is logged
    and ignored.
    """
    global _cached
    if _cached is not None:
        return _cached

    path = (config_dir or _default_config_dir()) / SETTINGS_FILE
    settings = get_default_settings()
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        else:
            if isinstance(data, dict):
                _overlay(settings, data)
            elif data is not None:
                logger.warning("Ignoring settings file %s: top level is not a mapping", path)

    _cached = settings
    return settings
