"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.  The Limiter instance
is created in fieldops/__init__.py with no default limits; this module
applies granular limits per route category, keyed by authenticated actor
when one is present.

Usage:
    from fieldops.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)


def actor_rate_limit_key():
    """Rate limit key: actor id if authenticated, else remote IP."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id:
        return f"user:{user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits:
        - Workflow item / admin endpoints:  TRANSITION_RATE_LIMIT (default 60/minute)
        - Queues / notifications:           200/minute
        - Health check:                     exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    write_limit = app.config.get("TRANSITION_RATE_LIMIT", "60/minute")
    for bp_name in ("items_bp", "admin_bp", "photo_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(write_limit, key_func=actor_rate_limit_key)(bp)

    for bp_name in ("queues_bp", "notification_bp"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("200/minute", key_func=actor_rate_limit_key)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — items/admin: %s, read: 200/min", write_limit)
