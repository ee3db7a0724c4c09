"""
Structured logging configuration.

Two output shapes share one set of context fields:

- readable: colored single line for a terminal, ids appended as ``key=value``
- json:     one object per line for log aggregation

The shape follows the environment (json unless DEBUG or TESTING) and can be
forced with LOG_FORMAT. LOG_LEVEL sets the threshold.

Services pass ``owner_id`` / ``job_id`` / ``task_id`` through ``extra=``.
RequestContextFilter fills in ``request_id`` and ``owner_id`` from ``g`` for
any record emitted while a request is active, so a service log line can be
joined to its request line without the service knowing about Flask.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Fields copied from a LogRecord into structured output when present
CONTEXT_FIELDS = (
    "request_id",
    "owner_id",
    "job_id",
    "task_id",
    "previous_task_id",
    "mapping_id",
    "pi_id",
    "bf_id",
    "job_count",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

# Shown after the message in readable output
_READABLE_IDS = ("request_id", "owner_id", "job_id", "task_id")


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class RequestContextFilter(logging.Filter):
    """Stamp request_id / owner_id from ``g`` onto records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = g.get("request_id")
            if getattr(record, "owner_id", None) is None:
                record.owner_id = g.get("owner_id")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
            **_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line output for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        ids = " ".join(
            f"{key}={getattr(record, key)}"
            for key in _READABLE_IDS
            if getattr(record, key, None) is not None
        )
        if ids:
            line += f" ({ids})"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one root handler with the formatter this environment wants.

    Called first in create_app; repeated calls (one app per test session,
    CLI commands) replace the handler rather than stacking another.
    """
    testing = app.config.get("TESTING", False)
    debug = app.config.get("DEBUG", False)

    level_name = os.getenv("LOG_LEVEL") or app.config.get("LOG_LEVEL") or (
        "DEBUG" if debug or testing else "INFO"
    )
    level = getattr(logging, level_name.upper(), logging.INFO)

    fmt = (os.getenv("LOG_FORMAT") or app.config.get("LOG_FORMAT") or "").lower()
    if fmt not in ("json", "readable"):
        fmt = "readable" if debug or testing else "json"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
