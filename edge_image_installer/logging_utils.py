from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOG_PATH = "/var/log/edge-image-installer.log"
FALLBACK_LOG_NAME = "edge-image-installer.log"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    try:
        return LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level!r}") from None


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: Union[int, str] = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure root logging once per process.

    The requested log path is tried first. If it cannot be opened (e.g. no
    write access to /var/log) the log goes to the working directory instead.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(parse_level(level))

    if getattr(logger, "_edge_installer_configured", False):
        return getattr(logger, "_edge_installer_log_path", log_path)

    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        chosen_path = log_path
    except OSError:
        chosen_path = str(Path.cwd() / FALLBACK_LOG_NAME)
        file_handler = logging.FileHandler(chosen_path)
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_edge_installer_configured", True)
    setattr(logger, "_edge_installer_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
