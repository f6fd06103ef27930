"""
Structured logging configuration.

- JSON lines in production, readable text in development
- Every record logged while a request is active carries its request id
  and path, so store, chat and audit lines can be tied to the request
  that caused them
- Access log after each request (health checks skipped)
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = ("/health", "/healthz")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


class RequestContextFilter(logging.Filter):
    """Stamp ``request_id`` and ``path`` on records.

    Outside a request both are ``"-"``. Installed on the root handler so
    records propagated from any module logger pass through it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            request_id = g.get("request_id", "-")
            path = request.path
        else:
            request_id = path = "-"
        if not hasattr(record, "request_id"):
            record.request_id = request_id
        if not hasattr(record, "path"):
            record.path = path
        return True


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        path = getattr(record, "path", "-")
        if path != "-":
            entry["path"] = path
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def init_logging(app: Flask) -> None:
    """Configure the root handler and the request id hooks for *app*."""
    log_level = str(app.config.get("LOG_LEVEL", "INFO")).upper()

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    if app.config.get("LOG_FORMAT", "text") == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    @app.before_request
    def _attach_request_id():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def _log_request(response):
        response.headers[REQUEST_ID_HEADER] = g.get("request_id", "-")
        if request.path in QUIET_PATHS:
            return response
        duration_ms = (time.time() - g.get("request_start", time.time())) * 1000
        app.logger.info("%s %s %s %.0fms", request.method, request.path, response.status_code, duration_ms)
        return response
