"""
Request timing middleware.

Assigns every request an id (the caller's ``X-Request-ID`` when supplied),
measures it, and echoes both back as response headers.  One access line is
logged per API request at a level chosen from the outcome: server errors at
ERROR, requests slower than ``SLOW_REQUEST_MS`` at WARNING, everything else
at DEBUG.  Health probes are not logged.
"""

import logging
import time
import uuid

from flask import Flask, current_app, g, request

logger = logging.getLogger(__name__)

_UNLOGGED_PREFIXES = ("/api/v1/health", "/static")

DEFAULT_SLOW_REQUEST_MS = 1000


def _level_for(status_code: int, duration_ms: float) -> int:
    if status_code >= 500:
        return logging.ERROR
    if duration_ms > current_app.config.get("SLOW_REQUEST_MS", DEFAULT_SLOW_REQUEST_MS):
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    """Register the before/after hooks."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"

        if request.path.startswith(_UNLOGGED_PREFIXES):
            return response

        logger.log(
            _level_for(response.status_code, duration_ms),
            "%s %s → %d", request.method, request.path, response.status_code,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
                "request_id": g.request_id,
                "actor_id": getattr(g, "jwt_user_id", None),
            },
        )
        return response
