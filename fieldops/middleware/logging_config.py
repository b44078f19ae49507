"""
Structured logging configuration.

Two output shapes over one root handler:

  ReadableFormatter   DEBUG/testing runs — one coloured line per record with
                      the workflow item appended as ``(family/item_id)``
  JSONFormatter       production — one JSON object per record for the log
                      aggregator

``RequestContextFilter`` stamps ``request_id`` and ``actor_id`` from the
current request onto every record, so engine and store log lines can be
joined to the HTTP request that caused them without threading ids through
service signatures.  Services add ``family`` / ``item_id`` / ``event_type``
themselves via ``extra=``.

Level comes from ``LOG_LEVEL`` (INFO in production, DEBUG otherwise).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes promoted into structured output when present
CONTEXT_KEYS = (
    "request_id",
    "actor_id",
    "family",
    "item_id",
    "event_type",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_KEYS
        if getattr(record, key, None) is not None
    }


class RequestContextFilter(logging.Filter):
    """Copy request id / actor id from ``flask.g`` onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "actor_id", None) is None:
                record.actor_id = getattr(g, "jwt_user_id", None)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured single-line output for local runs."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        ctx = _context(record)
        parts = [
            f"{self.COLORS.get(record.levelname, '')}{datetime.now():%H:%M:%S} "
            f"{record.levelname:<8}{self.RESET}",
            f"{record.name}: {record.getMessage()}",
        ]
        if "family" in ctx and "item_id" in ctx:
            parts.append(f"({ctx['family']}/{ctx['item_id']})")
        if "duration_ms" in ctx:
            parts.append(f"[{ctx['duration_ms']:.0f}ms]")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the formatter and context filter on the root logger."""
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    # Replace, never stack: create_app() runs more than once under pytest
    root = logging.getLogger()
    for old in list(root.handlers):
        if getattr(old, "_fieldops", False):
            root.removeHandler(old)
    handler._fieldops = True
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "json" if production else "readable")
