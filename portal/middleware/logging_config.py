"""
Logging setup for the portal.

Two renderings of the same records:
    json      one object per line for the log shipper; window coordinates
              and request metadata are grouped under ``context``
    readable  one line per record, window coordinates shown as
              ``IDP/assessment/CLA-2``

Services attach coordinates through ``extra={"track": ..., "phase": ...}``.
Inside a request the request id is added to every record automatically.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes copied into the JSON ``context`` object
WINDOW_FIELDS = ("track", "phase", "sub_stage", "window_id")
REQUEST_FIELDS = ("request_id", "method", "path", "status", "duration_ms", "remote_addr")
JOB_FIELDS = ("job_name",)
CONTEXT_FIELDS = WINDOW_FIELDS + REQUEST_FIELDS + JOB_FIELDS

NOISY_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic")


class RequestIdFilter(logging.Filter):
    """Stamp records emitted during a request with ``g.request_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None and has_request_context():
            record.request_id = getattr(g, "request_id", None)
        return True


def record_context(record: logging.LogRecord) -> dict:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) not in (None, "")
    }


def window_label(record: logging.LogRecord) -> str:
    parts = [getattr(record, name, None) for name in ("track", "phase", "sub_stage")]
    return "/".join(str(p) for p in parts if p)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "at": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        context = record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<8}"
        if self.color:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{stamp} {level} {record.name}"
        label = window_label(record)
        if label:
            line += f" [{label}]"
        line += f" {record.getMessage()}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_format(app) -> str:
    fmt = (app.config.get("LOG_FORMAT") or "auto").lower()
    if fmt in ("json", "readable"):
        return fmt
    return "readable" if app.config.get("DEBUG") or app.config.get("TESTING") else "json"


def configure_logging(app, stream=None):
    """
    Install one root handler for the app.

    LOG_LEVEL defaults to DEBUG for readable output and INFO for JSON.
    Re-running replaces the previous handler, so tests can build many apps.
    """
    fmt = _resolve_format(app)
    level_name = (app.config.get("LOG_LEVEL") or ("DEBUG" if fmt == "readable" else "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    stream = stream or sys.stderr

    handler = logging.StreamHandler(stream)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ReadableFormatter(color=hasattr(stream, "isatty") and stream.isatty()))
    handler.addFilter(RequestIdFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.config.get("TESTING"):
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
    return handler
