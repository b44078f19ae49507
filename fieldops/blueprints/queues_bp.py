"""
Work Queues Blueprint.

Routes:
  GET    /queues/review          – OPX review queue (equipment requests + cycle counts)
  GET    /queues/hub             – hub fulfillment queue
  GET    /queues/stale-reviews   – pending OPX reviews past the reminder threshold
"""

from flask import Blueprint, jsonify

from fieldops.blueprints import current_actor
from fieldops.services import queue_service, scope_store
from fieldops.utils.errors import register_workflow_error_handlers

queues_bp = Blueprint("queues_bp", __name__, url_prefix="/api/v1/queues")
register_workflow_error_handlers(queues_bp)


@queues_bp.route("/review", methods=["GET"])
def review_queue():
    actor = current_actor()
    queue = queue_service.review_queue(actor)
    return jsonify({
        "equipment_requests": [r.to_dict() for r in queue["equipment_requests"]],
        "cycle_counts": [c.to_dict() for c in queue["cycle_counts"]],
    })


@queues_bp.route("/hub", methods=["GET"])
def hub_queue():
    actor = current_actor()
    return jsonify([r.to_dict() for r in queue_service.hub_queue(actor)])


@queues_bp.route("/stale-reviews", methods=["GET"])
def stale_reviews():
    actor = current_actor()
    items = queue_service.stale_reviews(actor)
    return jsonify({
        "threshold_hours": scope_store.get_setting("opx_reminder_hours"),
        "items": [r.to_dict(include_lines=False) for r in items],
    })
