"""
Field Ops Workflow Core
Equipment health domain model.

Models:
    - BrokenItemReport: damaged equipment reported from the field
    - MaintenanceRecord: maintenance performed, optionally for a report
"""

from fieldops.models import db
from fieldops.models.base import WorkflowItemModel, iso


SEVERITIES = ("low", "medium", "high")


class BrokenItemReport(WorkflowItemModel):
    __tablename__ = "broken_item_reports"

    FAMILY = "broken_item_report"

    sku = db.Column(db.String(64), nullable=False)
    equipment_item_id = db.Column(
        db.Integer, db.ForeignKey("equipment_items.id", ondelete="SET NULL"), nullable=True,
    )
    location_name = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=False)
    severity = db.Column(db.String(10), nullable=False, default="medium")
    photo_path = db.Column(db.String(500), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        d = self.base_dict()
        d.update({
            "sku": self.sku,
            "equipment_item_id": self.equipment_item_id,
            "location_name": self.location_name,
            "description": self.description,
            "severity": self.severity,
            "photo_path": self.photo_path,
            "resolved_at": iso(self.resolved_at),
        })
        return d


class MaintenanceRecord(WorkflowItemModel):
    __tablename__ = "maintenance_records"

    FAMILY = "maintenance_record"

    sku = db.Column(db.String(64), nullable=False)
    equipment_item_id = db.Column(
        db.Integer, db.ForeignKey("equipment_items.id", ondelete="SET NULL"), nullable=True,
    )
    maintenance_type = db.Column(db.String(100), nullable=False)
    notes = db.Column(db.Text, default="")
    photo_path = db.Column(db.String(500), nullable=True)
    broken_item_report_id = db.Column(
        db.String(36), db.ForeignKey("broken_item_reports.id", ondelete="SET NULL"), nullable=True,
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        d = self.base_dict()
        d.update({
            "sku": self.sku,
            "equipment_item_id": self.equipment_item_id,
            "maintenance_type": self.maintenance_type,
            "notes": self.notes,
            "photo_path": self.photo_path,
            "broken_item_report_id": self.broken_item_report_id,
            "completed_at": iso(self.completed_at),
        })
        return d
