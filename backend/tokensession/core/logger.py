"""JSON logging for the session service.

Every line carries the request id of the request that produced it. Session
events add ``principal_id``/``client_id`` (and ``reason`` on denials) through
``extra=``; raw tokens and their hashes are never logged.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = (REQUEST_ID_HEADER, "X-Correlation-ID")

# ``extra=`` keys copied into the JSON payload when present on a record.
EXTRA_KEYS = ("endpoint", "elapsed_ms", "principal_id", "client_id", "reason", "removed")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, timestamped from the record itself."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, UTC).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update({k: getattr(record, k) for k in EXTRA_KEYS if hasattr(record, k)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """Return the request id, adopting an inbound correlation header if any.

    Outside a request a fresh id is returned on every call.
    """

    if not has_request_context():
        return str(uuid4())
    if "request_id" not in g:
        inbound = next(
            (request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)), None
        )
        g.request_id = inbound or str(uuid4())
    return g.request_id


def configure_logging(level: str | int = "INFO") -> None:
    """Send every logger's output to stdout as JSON at ``level``."""

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper() if isinstance(level, str) else level)


def init_app(app: Flask) -> None:
    """Seed the request id early and echo it back on every response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response):
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "init_app", "ensure_request_id", "JSONFormatter"]
