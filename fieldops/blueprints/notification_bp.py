"""
Notification Blueprint.

Routes:
  GET    /notifications                 – caller's notifications (?unread_only=1)
  GET    /notifications/unread-count    – badge count
  POST   /notifications/<nid>/read      – mark one read
  POST   /notifications/read-all        – mark all read
"""

from flask import Blueprint, jsonify, request

from fieldops.blueprints import current_actor, page_args
from fieldops.services.notification import NotificationService
from fieldops.utils.errors import register_workflow_error_handlers

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1/notifications")
register_workflow_error_handlers(notification_bp)


@notification_bp.route("", methods=["GET"])
def list_notifications():
    actor = current_actor()
    limit, offset = page_args()
    items, total = NotificationService.list_for_user(
        actor.id,
        unread_only=request.args.get("unread_only") in ("1", "true"),
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": [n.to_dict() for n in items], "total": total})


@notification_bp.route("/unread-count", methods=["GET"])
def unread_count():
    actor = current_actor()
    return jsonify({"unread_count": NotificationService.unread_count(actor.id)})


@notification_bp.route("/<int:nid>/read", methods=["POST"])
def mark_read(nid):
    actor = current_actor()
    notif = NotificationService.mark_read(actor, nid)
    return jsonify(notif.to_dict())


@notification_bp.route("/read-all", methods=["POST"])
def mark_all_read():
    actor = current_actor()
    count = NotificationService.mark_all_read(actor)
    return jsonify({"marked_read": count})
