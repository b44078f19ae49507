"""
Workflow Items Blueprint.

Routes:
  POST   /items/<family>                              – create item
  GET    /items/<family>                              – list (?status=&ops_area=&mine=1)
  GET    /items/<family>/<item_id>                    – item detail
  POST   /items/<family>/<item_id>/transitions        – apply an event
  POST   /items/<family>/<item_id>/comments           – add a comment
  GET    /items/<family>/<item_id>/events             – audit history
  GET    /items/<family>/<item_id>/available-events   – events the caller may apply
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from fieldops.blueprints import current_actor, page_args
from fieldops.core.exceptions import Forbidden
from fieldops.services import audit_store, queue_service, role_resolver
from fieldops.utils.errors import E, api_error, register_workflow_error_handlers

logger = logging.getLogger(__name__)

items_bp = Blueprint("items_bp", __name__, url_prefix="/api/v1/items")
register_workflow_error_handlers(items_bp)


# ── helpers ──────────────────────────────────────────────────────────────

def _engine():
    return current_app.extensions["workflow_engine"]


def _visible_item(family, item_id, actor):
    item = _engine().get(family, item_id)
    if not role_resolver.can_view(actor, item):
        raise Forbidden("Actor cannot view this item")
    return item


# ═════════════════════════════════════════════════════════════════════════════
# CREATE / READ
# ═════════════════════════════════════════════════════════════════════════════

@items_bp.route("/<family>", methods=["POST"])
def create_item(family):
    """Create a workflow item.  Body is the family payload."""
    actor = current_actor()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_REQUIRED, "JSON object body is required")

    result = _engine().create(family, actor, data)
    return jsonify(result.to_dict()), 201


@items_bp.route("/<family>", methods=["GET"])
def list_items(family):
    actor = current_actor()
    spec = _engine().family(family)
    limit, offset = page_args()
    items, total = queue_service.list_items(
        spec, actor,
        status=request.args.get("status"),
        ops_area=request.args.get("ops_area"),
        mine=request.args.get("mine") in ("1", "true"),
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": [i.to_dict() for i in items], "total": total})


@items_bp.route("/<family>/<item_id>", methods=["GET"])
def get_item(family, item_id):
    actor = current_actor()
    item = _visible_item(family, item_id, actor)
    return jsonify(item.to_dict())


# ═════════════════════════════════════════════════════════════════════════════
# TRANSITIONS
# ═════════════════════════════════════════════════════════════════════════════

@items_bp.route("/<family>/<item_id>/transitions", methods=["POST"])
def apply_transition(family, item_id):
    """Apply an event.

    Body: { event_type, payload?: {...}, expected_status?: str }
    """
    actor = current_actor()
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "Body must be a JSON object")

    event_type = data.get("event_type")
    if event_type is not None and not isinstance(event_type, str):
        return api_error(E.VALIDATION_INVALID, "event_type must be a string",
                         details={"event_type": "must be a string"})
    event_type = (event_type or "").strip()
    if not event_type:
        return api_error(E.VALIDATION_REQUIRED, "event_type is required")

    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        return api_error(E.VALIDATION_INVALID, "payload must be an object")

    expected_status = data.get("expected_status")
    if expected_status is not None and not isinstance(expected_status, str):
        return api_error(E.VALIDATION_INVALID, "expected_status must be a string",
                         details={"expected_status": "must be a string"})

    item = _engine().get(family, item_id)
    result = _engine().apply(item, event_type, actor, payload, expected_status=expected_status)
    return jsonify(result.to_dict())


@items_bp.route("/<family>/<item_id>/comments", methods=["POST"])
def add_comment(family, item_id):
    """Body: { note }"""
    actor = current_actor()
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "Body must be a JSON object")
    item = _engine().get(family, item_id)
    event = _engine().comment(item, actor, data.get("note"))
    return jsonify(event.to_dict()), 201


@items_bp.route("/<family>/<item_id>/events", methods=["GET"])
def list_events(family, item_id):
    actor = current_actor()
    item = _visible_item(family, item_id, actor)
    return jsonify(audit_store.history(family, item.id))


@items_bp.route("/<family>/<item_id>/available-events", methods=["GET"])
def available_events(family, item_id):
    actor = current_actor()
    item = _visible_item(family, item_id, actor)
    return jsonify({
        "status": item.status,
        "events": _engine().available_events(item, actor),
    })
