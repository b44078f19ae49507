"""
Field Ops Workflow Core
Cycle count domain model.

Models:
    - CycleCount: a stock count at one location, validated or rejected by OPX
    - CycleCountLine: one counted SKU
"""

from fieldops.models import db
from fieldops.models.base import WorkflowItemModel, iso


class CycleCount(WorkflowItemModel):
    __tablename__ = "cycle_counts"

    FAMILY = "cycle_count"

    location_name = db.Column(db.String(200), nullable=False)
    validated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    validated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_note = db.Column(db.Text, nullable=True)

    lines = db.relationship(
        "CycleCountLine", back_populates="cycle_count",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="CycleCountLine.id",
    )

    def to_dict(self, include_lines=True):
        d = self.base_dict()
        d.update({
            "location_name": self.location_name,
            "validated_at": iso(self.validated_at),
            "validated_by": self.validated_by,
            "rejection_note": self.rejection_note,
        })
        if include_lines:
            d["lines"] = [ln.to_dict() for ln in self.lines]
        return d


class CycleCountLine(db.Model):
    __tablename__ = "cycle_count_lines"

    id = db.Column(db.Integer, primary_key=True)
    cycle_count_id = db.Column(
        db.String(36), db.ForeignKey("cycle_counts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sku = db.Column(db.String(64), nullable=False)
    equipment_item_id = db.Column(
        db.Integer, db.ForeignKey("equipment_items.id", ondelete="SET NULL"), nullable=True,
    )
    recorded_qty = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, default="")
    photo_path = db.Column(db.String(500), nullable=True)

    cycle_count = db.relationship("CycleCount", back_populates="lines")

    def to_dict(self):
        return {
            "id": self.id,
            "sku": self.sku,
            "equipment_item_id": self.equipment_item_id,
            "recorded_qty": self.recorded_qty,
            "notes": self.notes,
            "photo_path": self.photo_path,
        }
