"""Structured JSON console logging for the pipeline processes."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from .redaction import sanitize_for_logging, sanitize_text

ROOT_LOGGER_NAME = "insolation_pipeline"

# Third-party loggers that log every request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic")

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra=`` fields attached to a log record."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JsonConsoleFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` context lands under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_text(record.getMessage()),
        }
        context = record_context(record)
        if context:
            event["context"] = sanitize_for_logging(context)
        if record.exc_info:
            event["exception"] = sanitize_text(self.formatException(record.exc_info))
        return json.dumps(event, default=str, ensure_ascii=False)


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: int | str = logging.INFO,
    *,
    quiet_third_party: bool = True,
) -> logging.Logger:
    """Configure the pipeline logger once per process.

    Modules log through children such as ``insolation_pipeline.fetcher``,
    which propagate here. ``level`` accepts a number or a name like "debug".
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    if quiet_third_party:
        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonConsoleFormatter())
        logger.addHandler(handler)
    return logger
