"""
Scope domain model — routing data and actor assignments.

Models:
    - OpsAreaHub: ops_area → hub binding (many areas to one hub)
    - OpxAreaAssignment: reviewer scope (user ↔ operating area)
    - HubAdminAssignment: fulfillment scope (user ↔ hub)
    - AppSetting: administrator-configured global policy values

Assignments are revoked, never deleted: ``is_active=False`` + ``revoked_at``.
"""

from datetime import datetime, timezone

from fieldops.models import db


def _now():
    return datetime.now(timezone.utc)


class OpsAreaHub(db.Model):
    __tablename__ = "ops_area_to_hub"

    id = db.Column(db.Integer, primary_key=True)
    ops_area = db.Column(db.String(100), nullable=False, unique=True)
    hub = db.Column(db.String(100), nullable=False, index=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    def to_dict(self):
        return {"ops_area": self.ops_area, "hub": self.hub}


class _AssignmentMixin:
    id = db.Column(db.Integer, primary_key=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def revoke(self):
        self.is_active = False
        self.revoked_at = _now()


class OpxAreaAssignment(_AssignmentMixin, db.Model):
    __tablename__ = "opx_area_assignments"
    __table_args__ = (
        db.Index("ix_opx_assignment_user_area", "user_id", "ops_area"),
    )

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ops_area = db.Column(db.String(100), nullable=False)
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "ops_area": self.ops_area,
            "assigned_by": self.assigned_by,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
        }


class HubAdminAssignment(_AssignmentMixin, db.Model):
    __tablename__ = "hub_admin_assignments"
    __table_args__ = (
        db.Index("ix_hub_assignment_user_hub", "user_id", "hub"),
    )

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hub = db.Column(db.String(100), nullable=False)
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "hub": self.hub,
            "assigned_by": self.assigned_by,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
        }


# ── Global policy ───────────────────────────────────────────────────────────

DEFAULT_SETTINGS = {
    "opx_reminder_hours": 24,
}


class AppSetting(db.Model):
    __tablename__ = "app_settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), nullable=False, unique=True)
    value = db.Column(db.JSON, nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    def to_dict(self):
        return {
            "key": self.key,
            "value": self.value,
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
