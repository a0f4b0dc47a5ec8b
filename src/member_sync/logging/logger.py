"""
Logging setup shared by every member_sync module.

``get_logger(__name__)`` returns a logger under the ``member_sync`` namespace.
The namespace root writes to the console and to a master log file; each
module logger adds a file of its own in the same directory. Level, directory,
file name and rotation come from ``config/member_sync.yml``, and
``debug: true`` forces DEBUG output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from logging import Logger
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from member_sync.config import get_config

PROJECT_ROOT = Path(__file__).resolve().parents[3]
BASE_LOGGER_NAME = "member_sync"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROTATE_MAX_BYTES = 5 * 1024 * 1024
ROTATE_BACKUPS = 5


@dataclass(frozen=True)
class LogSettings:
    level: int
    console_level: int
    directory: Path
    master_file: str
    rotate: bool

    @classmethod
    def from_config(cls, cfg: Any) -> "LogSettings":
        section = cfg.logging or {}
        debug = bool(getattr(cfg, "debug", False))

        level_name = str(section.get("level", "INFO")).upper()
        level = logging.DEBUG if debug else getattr(logging, level_name, logging.INFO)

        directory = Path(section.get("dir") or cfg.paths.get("logs_dir") or "logs")
        if not directory.is_absolute():
            directory = PROJECT_ROOT / directory

        return cls(
            level=level,
            console_level=logging.DEBUG if debug else logging.INFO,
            directory=directory,
            master_file=section.get("file") or "member_sync.log",
            rotate=bool(section.get("rotate", False)),
        )


_settings: Optional[LogSettings] = None
_registered: Dict[str, Logger] = {}


def _file_handler(settings: LogSettings, filename: str) -> logging.Handler:
    settings.directory.mkdir(parents=True, exist_ok=True)
    path = settings.directory / filename

    if settings.rotate:
        handler: logging.Handler = RotatingFileHandler(
            path,
            maxBytes=ROTATE_MAX_BYTES,
            backupCount=ROTATE_BACKUPS,
            encoding="utf-8",
        )
    else:
        handler = logging.FileHandler(path, encoding="utf-8")

    handler.setLevel(settings.level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _setup() -> LogSettings:
    """Attach master file and console handlers to the namespace root, once."""
    global _settings
    if _settings is not None:
        return _settings

    settings = LogSettings.from_config(get_config())

    root = logging.getLogger(BASE_LOGGER_NAME)
    root.setLevel(settings.level)
    root.propagate = False
    root.addHandler(_file_handler(settings, settings.master_file))

    console = logging.StreamHandler()
    console.setLevel(settings.console_level)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console)

    _settings = settings
    return settings


def _qualified(name: Optional[str]) -> str:
    if not name or name == BASE_LOGGER_NAME:
        return BASE_LOGGER_NAME
    if name.startswith(BASE_LOGGER_NAME + "."):
        return name
    return f"{BASE_LOGGER_NAME}.{name}"


def get_logger(name: str | None = None) -> Logger:
    """
    Logger for ``name``, moved under ``member_sync.`` when it is not already.

    Module loggers propagate to the namespace root and also write to
    ``<log dir>/<dotted_name_with_underscores>.log``.
    """
    settings = _setup()
    qualified = _qualified(name)

    logger = logging.getLogger(qualified)
    logger.setLevel(settings.level)

    if qualified != BASE_LOGGER_NAME:
        if not any(getattr(h, "is_module_handler", False) for h in logger.handlers):
            handler = _file_handler(settings, f"{qualified.replace('.', '_')}.log")
            handler.is_module_handler = True  # type: ignore[attr-defined]
            logger.addHandler(handler)

    _registered[qualified] = logger
    return logger


def log_info(message: str, *args, **kwargs) -> None:
    get_logger().info(message, *args, **kwargs)


def log_warning(message: str, *args, **kwargs) -> None:
    get_logger().warning(message, *args, **kwargs)


def log_error(message: str, *args, **kwargs) -> None:
    get_logger().error(message, *args, **kwargs)


def list_active_loggers() -> List[str]:
    return sorted(_registered)
