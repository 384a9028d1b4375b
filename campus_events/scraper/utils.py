from __future__ import annotations

import logging
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

from . import config

LOGGER = logging.getLogger("campus_events")
_LOGGER_INITIALISED = False
_CURRENT_LOG_FILE: Path = config.LOG_FILE

_WHITESPACE = re.compile(r"\s+")


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED, _CURRENT_LOG_FILE

    ensure_dirs()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _CURRENT_LOG_FILE = log_path
    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def setup_run_logger() -> Path:
    """Rotate to a fresh timestamped log file for the current run."""

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_path = config.LOG_DIR / f"scrape_{timestamp}.log"
    _configure_logger(log_path)
    LOGGER.info("Logging to %s", log_path)
    return log_path


def get_current_log_path() -> Path:
    """Return the path to the log file currently receiving log lines."""

    _ensure_logger()
    return _CURRENT_LOG_FILE


def ensure_dirs() -> None:
    """Ensure that the application's expected directory structure exists."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def now_iso() -> str:
    """Return a UTC timestamp formatted as ISO8601 without fractional seconds."""

    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def clean_text(value: object) -> str:
    """Collapse internal whitespace and trim; ``None`` becomes ``""``."""

    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()


def short_error_message(exc: BaseException, max_length: int = 200) -> str:
    text = str(exc).strip()
    message = text.splitlines()[0] if text else exc.__class__.__name__
    if len(message) > max_length:
        return message[: max_length - 3] + "..."
    return message


__all__ = [
    "LOGGER",
    "setup_run_logger",
    "get_current_log_path",
    "ensure_dirs",
    "log_line",
    "now_iso",
    "clean_text",
    "short_error_message",
]
