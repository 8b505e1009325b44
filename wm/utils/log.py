"""
Logging utilities for the wm toolkit.

Provides unified structured logging:
- pretty console output via Rich
- optional structured (JSON) file output, one object per line
"""

import logging
import json
from pathlib import Path

from rich.logging import RichHandler

ROOT_LOGGER = "wm"


class JSONFormatter(logging.Formatter):
    """
    Formatter that serializes log records to JSON.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger for the given name inside the `wm` logger tree.

    The first call attaches a RichHandler to the `wm` root logger so that
    every module logger shares one console sink. Levels and file output are
    set by `configure_logging`.

    Parameters
    ----------
    name
        Logger name (typically __name__).

    Returns
    -------
    logging.Logger
        Logger instance.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        console_handler = RichHandler(rich_tracebacks=True)
        root.addHandler(console_handler)
        root.setLevel(logging.INFO)
    return logging.getLogger(name)


def configure_logging(level: int | str = logging.INFO, log_file: str | Path | None = None) -> logging.Logger:
    """
    Set the level of the `wm` logger tree and optionally add a JSON file sink.

    Parameters
    ----------
    level
        Log level (int or name such as "debug"), defaults to INFO.
    log_file
        When given, a FileHandler writing JSON lines is attached.

    Returns
    -------
    logging.Logger
        The configured `wm` root logger.
    """
    if isinstance(level, str):
        level = level.upper()
    root = get_logger(ROOT_LOGGER)
    root.setLevel(level)
    for handler in root.handlers:
        handler.setLevel(level)

    if log_file is not None:
        file_handler = logging.FileHandler(Path(log_file), mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    return root
