"""Logging setup for processes that embed the bus.

Listener faults, duplicate subscription ids and late replies are reported only
through the `busflow.*` loggers, so hosts should call setup_logging() once.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _rotating_handler(log_path: Path, cfg: dict[str, Any]) -> logging.Handler:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=int(cfg.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("backup_count", 3)),
        encoding="utf-8",
    )


def setup_logging(project_root: Path | None, settings: dict[str, Any]) -> None:
    """Configure the root logger from settings["logging"].

    With project_root, logs go to a rotating file under it (plus the console
    if log_to_console is set); without it, only to the console. When
    event_bus.debug is on, the busflow.events logger is lowered to DEBUG so
    per-delivery traces show up regardless of the root level.
    """
    cfg = settings.get("logging", {})
    level = getattr(logging, str(cfg.get("level", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = []
    if project_root is not None:
        handlers.append(
            _rotating_handler(project_root / cfg.get("file", "logs/busflow.log"), cfg)
        )
    if project_root is None or cfg.get("log_to_console", False):
        handlers.append(logging.StreamHandler())

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)

    if (settings.get("event_bus") or {}).get("debug"):
        logging.getLogger("busflow.events").setLevel(logging.DEBUG)
