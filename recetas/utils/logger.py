"""Logging infrastructure for Recetas.

All log output goes to stderr so stdout stays clean for rendered recipes and
``--debug`` JSON. Configured via environment variables:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_TYPE: text (rich console) or json (one object per line) (default: text)

Flow-level log calls pass ``extra={"request_id": ..., "session_id": ...}`` so
that every line belonging to one extraction or generation can be correlated.
"""

import json
import logging
import os
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

CONTEXT_FIELDS = ("request_id", "session_id")

# Third-party loggers that log every HTTP request at INFO
NOISY_LOGGERS = ("google_genai", "google.genai", "aiohttp", "httpx")


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log collectors."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


class ContextFormatter(logging.Formatter):
    """Message followed by ``[request_id=.. session_id=..]`` when present.

    Time, level and colors are rendered by RichHandler.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        context = " ".join(f"{key}={value}" for key, value in _context(record).items())
        if context:
            message = f"{message} [{context}]"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def _build_handler(log_type: str) -> logging.Handler:
    if log_type == "json":
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
        return handler

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        log_time_format="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(ContextFormatter())
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return the named logger, attaching a handler on first use.

    Args:
        name: Logger name, typically the package name.

    Returns:
        Configured logger instance (reused if already configured).
    """
    logger_instance = logging.getLogger(name)
    if logger_instance.handlers:
        return logger_instance

    log_level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    log_type = os.getenv("LOG_TYPE", "text").lower()

    handler = _build_handler(log_type)
    handler.setLevel(log_level)
    logger_instance.setLevel(log_level)
    logger_instance.addHandler(handler)
    return logger_instance


logger = get_logger("recetas")

for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)
