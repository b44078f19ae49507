"""
WorkflowItemModel — abstract base for the five request-like families.

Every family table (equipment requests, cycle counts, broken-item reports,
maintenance records, inventory moves) inherits from WorkflowItemModel instead
of db.Model directly. This adds:
  - uuid string primary key
  - status / ops_area / created_by_user_id / created_at / updated_at
  - ``ops_areas`` — every operating area the item touches (area scope check)
  - ``FAMILY`` — the family tag used by the engine and the audit store
"""

import uuid
from datetime import datetime, timezone

from fieldops.models import db


def _uuid() -> str:
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


def iso(value):
    """Serialise a date/datetime (or None) for to_dict()."""
    return value.isoformat() if value else None


class WorkflowItemModel(db.Model):
    """Abstract base for workflow item tables."""
    __abstract__ = True

    FAMILY = ""

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    status = db.Column(db.String(30), nullable=False, index=True)
    ops_area = db.Column(db.String(100), nullable=False, index=True)
    created_by_user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    @property
    def ops_areas(self) -> tuple[str, ...]:
        return (self.ops_area,)

    def base_dict(self) -> dict:
        return {
            "id": self.id,
            "family": self.FAMILY,
            "status": self.status,
            "ops_area": self.ops_area,
            "created_by_user_id": self.created_by_user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def to_dict(self) -> dict:
        return self.base_dict()

    def __repr__(self):
        return f"<{type(self).__name__} {self.id}: {self.status}>"
