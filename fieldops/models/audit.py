"""
Field Ops Workflow Core
Audit domain model.

Models:
    - WorkflowEvent: immutable, append-only record of one accepted transition
      (or comment) on a workflow item of any family.
"""

from datetime import datetime, timezone

from fieldops.models import db


# ── Constants ────────────────────────────────────────────────────────────────

WORKFLOW_FAMILIES = {
    "equipment_request",
    "cycle_count",
    "broken_item_report",
    "maintenance_record",
    "inventory_move",
}

EVENT_TYPES = {
    "created",
    "approved",
    "rejected",
    "modified",
    "fulfilled",
    "shipped",
    "comment",
    "cancelled",
    "validated",
}


class WorkflowEvent(db.Model):
    """
    One row per accepted transition.

    ``old_values`` / ``new_values`` are open maps: the shape differs per
    family and event type.  Status-changing events always carry
    ``new_values["status"]``.
    """

    __tablename__ = "workflow_events"
    __table_args__ = (
        db.Index("idx_workflow_event_item", "family", "item_id", "created_at"),
        db.Index("idx_workflow_event_actor", "actor_user_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    family = db.Column(db.String(30), nullable=False)
    item_id = db.Column(db.String(36), nullable=False)
    actor_user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    event_type = db.Column(db.String(20), nullable=False)
    event_notes = db.Column(db.Text, nullable=True)
    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)

    # Timestamp (immutable)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "family": self.family,
            "item_id": self.item_id,
            "actor_user_id": self.actor_user_id,
            "event_type": self.event_type,
            "event_notes": self.event_notes,
            "old_values": self.old_values or {},
            "new_values": self.new_values or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkflowEvent {self.id}: {self.event_type} on {self.family}/{self.item_id}>"
