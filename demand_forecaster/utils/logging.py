"""
Logging setup for the Demand Forecaster.

``configure_logging(config)`` is called once, by the CLI, before a command
does any work. Library modules only ever do
``logger = logging.getLogger(__name__)``.

Run correlation:
  Pipeline code logs with ``extra=context.log_extra``, so every record of a
  run carries a ``request_id`` attribute. The plain-text format keeps the id
  inside the message (``... | request_id=<id>``) for grepping; the JSON format
  also emits it as a top-level field::

    {"ts": "2023-01-07T18:00:00Z", "level": "INFO", "logger": "...",
     "msg": "[1/4] Loading facts | request_id=r1", "request_id": "r1"}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from demand_forecaster.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Loggers that are chatty at INFO (one line per HTTP request).
_QUIET_LOGGERS = ("httpx", "httpcore")

_BUILTIN_RECORD_FIELDS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Return the fields a caller attached with ``extra=``."""
    return {
        key: val
        for key, val in record.__dict__.items()
        if key not in _BUILTIN_RECORD_FIELDS and not key.startswith("_")
    }


class _JsonFormatter(logging.Formatter):
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``msg``,
    optional ``exc``, then any ``extra=`` fields such as ``request_id``."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": created.strftime(LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        payload.update(record_extras(record))
        return json.dumps(payload, default=str)


def _make_handler(
    handler: logging.Handler, level: int, formatter: logging.Formatter
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: "LoggingConfig") -> None:
    """Install stdout and optional file handlers on the root logger.

    Replaces any handlers already on the root logger, so calling it twice
    (e.g. from tests) does not duplicate output.

    Args:
        config: The ``[logging]`` section of ``AppConfig``.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = (
        _JsonFormatter()
        if config.json_format
        else logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    )

    handlers = [_make_handler(logging.StreamHandler(sys.stdout), level, formatter)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _make_handler(logging.FileHandler(log_path, encoding="utf-8"), level, formatter)
        )

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
