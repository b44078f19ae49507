"""
Field Ops Workflow Core
Inventory move domain model.

Models:
    - InventoryMove: stock transfer between two locations / operating areas
    - InventoryMoveLine: one moved SKU

The owning ``ops_area`` column is the move's source area; both source and
target areas count for reviewer scope.
"""

from fieldops.models import db
from fieldops.models.base import WorkflowItemModel, iso


class InventoryMove(WorkflowItemModel):
    __tablename__ = "inventory_moves"

    FAMILY = "inventory_move"

    source_location_name = db.Column(db.String(200), nullable=True)
    target_ops_area = db.Column(db.String(100), nullable=False, index=True)
    target_location_name = db.Column(db.String(200), nullable=True)
    notes = db.Column(db.Text, default="")
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lines = db.relationship(
        "InventoryMoveLine", back_populates="move",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="InventoryMoveLine.id",
    )

    @property
    def source_ops_area(self) -> str:
        return self.ops_area

    @property
    def ops_areas(self) -> tuple[str, ...]:
        if self.target_ops_area and self.target_ops_area != self.ops_area:
            return (self.ops_area, self.target_ops_area)
        return (self.ops_area,)

    def to_dict(self, include_lines=True):
        d = self.base_dict()
        d.update({
            "source_ops_area": self.ops_area,
            "source_location_name": self.source_location_name,
            "target_ops_area": self.target_ops_area,
            "target_location_name": self.target_location_name,
            "notes": self.notes,
            "completed_at": iso(self.completed_at),
            "cancelled_at": iso(self.cancelled_at),
        })
        if include_lines:
            d["lines"] = [ln.to_dict() for ln in self.lines]
        return d


class InventoryMoveLine(db.Model):
    __tablename__ = "inventory_move_lines"

    id = db.Column(db.Integer, primary_key=True)
    move_id = db.Column(
        db.String(36), db.ForeignKey("inventory_moves.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sku = db.Column(db.String(64), nullable=False)
    equipment_item_id = db.Column(
        db.Integer, db.ForeignKey("equipment_items.id", ondelete="SET NULL"), nullable=True,
    )
    qty = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, default="")

    move = db.relationship("InventoryMove", back_populates="lines")

    def to_dict(self):
        return {
            "id": self.id,
            "sku": self.sku,
            "equipment_item_id": self.equipment_item_id,
            "qty": self.qty,
            "notes": self.notes,
        }
