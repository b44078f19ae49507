"""
Field Ops Workflow Core
Equipment domain model.

Models:
    - EquipmentItem: read-only catalog used to validate request lines
    - EquipmentRequest: field staff request routed OPX → Hub
    - EquipmentRequestLineItem: one requested catalog item, with per-line
      approval sub-status
"""

from datetime import datetime, timezone

from fieldops.models import db
from fieldops.models.base import WorkflowItemModel, iso


# ── Constants ────────────────────────────────────────────────────────────────

LINE_APPROVAL_STATUSES = {"pending", "approved", "declined"}


class EquipmentItem(db.Model):
    """Catalog entry. Maintained outside the workflow core."""

    __tablename__ = "equipment_items"

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "is_active": self.is_active,
        }


class EquipmentRequest(WorkflowItemModel):
    """
    Equipment request.

    Lifecycle: pending_opx → opx_approved → fulfilled | declined,
    with opx_rejected ⇄ pending_opx for owner resubmission.
    ``hub`` is snapshotted from the ops-area binding at creation.
    """

    __tablename__ = "equipment_requests"

    FAMILY = "equipment_request"

    hub = db.Column(db.String(100), nullable=False, index=True)
    required_by_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, default="")

    opx_reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    opx_reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    opx_notes = db.Column(db.Text, nullable=True)

    decline_reason = db.Column(db.Text, nullable=True)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    declined_at = db.Column(db.DateTime(timezone=True), nullable=True)

    line_items = db.relationship(
        "EquipmentRequestLineItem", back_populates="request",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="EquipmentRequestLineItem.id",
    )

    def to_dict(self, include_lines=True):
        d = self.base_dict()
        d.update({
            "hub": self.hub,
            "required_by_date": iso(self.required_by_date),
            "notes": self.notes,
            "opx_reviewed_by": self.opx_reviewed_by,
            "opx_reviewed_at": iso(self.opx_reviewed_at),
            "opx_notes": self.opx_notes,
            "decline_reason": self.decline_reason,
            "fulfilled_at": iso(self.fulfilled_at),
            "declined_at": iso(self.declined_at),
        })
        if include_lines:
            d["line_items"] = [li.to_dict() for li in self.line_items]
        return d


class EquipmentRequestLineItem(db.Model):
    __tablename__ = "equipment_request_line_items"

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.String(36),
        db.ForeignKey("equipment_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    equipment_id = db.Column(
        db.Integer, db.ForeignKey("equipment_items.id", ondelete="RESTRICT"), nullable=False,
    )
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, default="")

    approval_status = db.Column(db.String(20), nullable=False, default="pending")
    original_quantity = db.Column(db.Integer, nullable=True)
    modified_by_opx = db.Column(db.Boolean, nullable=False, default=False)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decline_reason = db.Column(db.Text, nullable=True)

    request = db.relationship("EquipmentRequest", back_populates="line_items")
    equipment = db.relationship("EquipmentItem", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "request_id": self.request_id,
            "equipment_id": self.equipment_id,
            "sku": self.equipment.sku if self.equipment else None,
            "name": self.equipment.name if self.equipment else None,
            "quantity": self.quantity,
            "reason": self.reason,
            "approval_status": self.approval_status,
            "original_quantity": self.original_quantity,
            "modified_by_opx": self.modified_by_opx,
            "approved_by": self.approved_by,
            "approved_at": iso(self.approved_at),
            "decline_reason": self.decline_reason,
        }
