"""Logging helpers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from vybegen.config.settings import AppConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILENAME = "vybegen.log"

# Chatty third-party loggers; connection and plugin noise stays out of the app log.
_QUIET_LOGGERS = ("urllib3", "PIL", "httpx", "gradio")


def setup_logging(config: AppConfig, level: Optional[int] = None) -> logging.Logger:
    """Send application logs to the console and a rotating file under ``config.log_dir``."""
    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    resolved = level if level is not None else logging.getLevelName(config.log_level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    file_handler = RotatingFileHandler(
        log_dir / LOG_FILENAME,
        maxBytes=2 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
        delay=True,
    )
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        handlers=[file_handler, logging.StreamHandler()],
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("vybegen")
    logger.debug("Logging to %s", log_dir / LOG_FILENAME)
    return logger
