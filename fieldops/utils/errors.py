"""Standardised API error responses.

Usage
-----
    from fieldops.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Item not found")
    return api_error(E.VALIDATION_REQUIRED, "event_type is required")
    return api_error(E.VALIDATION_INVALID, "Invalid payload", details={"note": "required"})
"""

from __future__ import annotations

import logging

from flask import jsonify

from fieldops.core.exceptions import (
    Conflict,
    Forbidden,
    IllegalTransition,
    InvalidPayload,
    NotFoundError,
    UnconfiguredArea,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error codes, all ``ERR_``-prefixed."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    ILLEGAL_TRANSITION = "ERR_ILLEGAL_TRANSITION"

    # Server – HTTP 500
    UNCONFIGURED_AREA = "ERR_UNCONFIGURED_AREA"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.ILLEGAL_TRANSITION: 409,
    E.UNCONFIGURED_AREA: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """``({"error", "code"[, "details"]}, status)`` for a view to return.

    The status defaults to the one registered for *code*, else 400.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _DEFAULT_STATUS.get(code, 400)


def register_workflow_error_handlers(bp):
    """Attach the workflow exception → JSON mapping to a blueprint."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(e):
        return api_error(E.NOT_FOUND, str(e))

    @bp.errorhandler(Forbidden)
    def _handle_forbidden(e):
        return api_error(E.FORBIDDEN, str(e) or "Forbidden")

    @bp.errorhandler(IllegalTransition)
    def _handle_illegal(e):
        return api_error(
            E.ILLEGAL_TRANSITION, str(e),
            details={"status": e.status, "event_type": e.event_type},
        )

    @bp.errorhandler(InvalidPayload)
    def _handle_invalid(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @bp.errorhandler(Conflict)
    def _handle_conflict(e):
        return api_error(E.CONFLICT_STATE, str(e))

    @bp.errorhandler(UnconfiguredArea)
    def _handle_unconfigured(e):
        logger.error("Unconfigured operating area: %s", e.ops_area)
        return api_error(E.UNCONFIGURED_AREA, str(e))
