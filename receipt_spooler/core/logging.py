"""
Logging utilities for Receipt Spooler.

- RequestIdFilter attaches request_id and path (inside a Flask request context)
  and defaults the job_id / error_kind fields the print worker sets via `extra`
- JsonFormatter emits structured lines when RECEIPTSPOOLER_JSON_LOGS=true
- configure_logging() initializes root logging with journald or console
"""

from __future__ import annotations

import logging
import os


class RequestIdFilter(logging.Filter):
    """
    Attach request-scoped metadata (request_id, path) to log records.
    Safely degrades outside of a Flask request context.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            from flask import g, has_request_context, request  # lazy import

            record.request_id = g.request_id if has_request_context() and hasattr(g, "request_id") else "-"
            record.path = request.path if has_request_context() else "-"
        except Exception:
            record.request_id = "-"
            record.path = "-"
        if not hasattr(record, "job_id"):
            record.job_id = "-"
        if not hasattr(record, "error_kind"):
            record.error_kind = None
        return True


class JsonFormatter(logging.Formatter):
    """
    Minimal JSON formatter: timestamp, level, logger, message, request/job ids,
    plus error_kind and the formatted traceback when present.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        from json import dumps

        base = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "job_id": getattr(record, "job_id", "-"),
        }
        path = getattr(record, "path", None)
        if path is not None:
            base["path"] = path
        kind = getattr(record, "error_kind", None)
        if kind:
            base["error_kind"] = kind
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return dumps(base, ensure_ascii=False)


def configure_logging() -> logging.Logger:
    """
    Configure root logging for the service.

    Behavior:
    - Sets root logger to INFO
    - Clears any existing handlers to avoid duplicates on reload
    - Chooses JSON or plain formatter based on RECEIPTSPOOLER_JSON_LOGS
    - Prefer systemd's JournalHandler, fallback to StreamHandler
    - Adds RequestIdFilter so formatters can reference %(request_id)s and %(job_id)s
    - Ensures Flask app logger propagates to root (no separate handlers)

    Returns the configured root logger.
    """
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    root.handlers = []

    json_logs = os.environ.get("RECEIPTSPOOLER_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s %(request_id)s %(job_id)s %(message)s")

    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler()
        handler.setFormatter(formatter)
    except Exception:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    try:
        flask_logger = logging.getLogger("flask.app")
        flask_logger.handlers = []
        flask_logger.propagate = True
    except Exception:
        pass

    return root


__all__ = ["JsonFormatter", "RequestIdFilter", "configure_logging"]
