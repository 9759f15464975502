"""
Root logger setup for the server process.

Formats (``config.logging.format``):
    simple:   ``LEVEL message``
    detailed: timestamp, logger name, level, message
    json:     one JSON object per line
"""

from __future__ import annotations

import json
import logging
import sys

from account_directory.config import LoggingSettings

FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Render a record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, DATE_FORMAT),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def build_formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JsonFormatter()
    return logging.Formatter(FORMATS.get(fmt, FORMATS["detailed"]), datefmt=DATE_FORMAT)


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Install a single stderr handler on the ``account_directory`` logger."""
    if settings is None:
        from account_directory.config import config

        settings = config.logging

    logger = logging.getLogger("account_directory")
    level = logging.getLevelName(settings.level.upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(build_formatter(settings.format))
    logger.addHandler(handler)
