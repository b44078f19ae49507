"""
Health check blueprint.

    GET /api/v1/health

Reports database reachability and whether any operating area is bound to a
hub.  An empty binding table does not fail the probe (a fresh install has
none) but every area-scoped submission would raise UnconfiguredArea, so it
is surfaced as a warning.
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from fieldops.models import db
from fieldops.models.scope import OpsAreaHub

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


def _check_database():
    started = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _check_scope_bindings():
    bound = db.session.scalar(select(func.count(OpsAreaHub.id))) or 0
    return {"status": "ok" if bound else "warning", "bound_areas": bound}


@health_bp.route("", methods=["GET"])
def health():
    checks = {}
    try:
        checks["database"] = _check_database()
        checks["scope_bindings"] = _check_scope_bindings()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Health probe failed: %s", exc)
        checks["database"] = {"status": "error", "detail": str(exc)}
        return jsonify({"status": "degraded", "checks": checks}), 503

    return jsonify({"status": "ok", "checks": checks}), 200
