"""Centralized logging setup for parley."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import SETTINGS, AppConfig

_LOGGER: Optional[logging.Logger] = None

# Record attributes appended to the message when a caller passes them via ``extra``.
EXTRA_FIELDS = (
    ("session_id", "session"),
    ("model", "model"),
    ("turn", "turn"),
    ("call_id", "call"),
    ("status_code", "status"),
    ("elapsed_ms", "elapsed_ms"),
    ("total_tokens", "total_tokens"),
    ("original_tokens", "original_tokens"),
    ("new_tokens", "new_tokens"),
    ("input_count", "inputs"),
)


class ExtraFormatter(logging.Formatter):
    """Formatter that renders selected ``extra`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for attr, label in EXTRA_FIELDS:
            if hasattr(record, attr):
                extras.append(f"{label}={getattr(record, attr)}")
        message = super().format(record)
        if extras:
            message = f"{message} [{', '.join(extras)}]"
        return message


def setup_logging(level: str | int = "INFO", settings: AppConfig = SETTINGS) -> logging.Logger:
    """Configure the ``parley`` logger once and return it."""

    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    log_dir = settings.paths.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "parley.log"

    logger = logging.getLogger("parley")
    logger.setLevel(level if isinstance(level, int) else getattr(logging, str(level).upper(), logging.INFO))

    formatter = ExtraFormatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    file_handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if os.environ.get("PARLEY_LOG_TO_STDOUT", "0") == "1":
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    logger.debug("Logging initialized at %s", log_path)
    _LOGGER = logger
    return logger


__all__ = ["ExtraFormatter", "setup_logging"]
