"""
Auth Models — actors and their global roles.

Actors are never hard-deleted: ``is_active`` is flipped instead.
Roles are a tagged set (one ``user_roles`` row per role) rather than
independent boolean columns, so ``super_admin`` implying every other role is
resolved in exactly one place (services/role_resolver.py).
"""

from datetime import datetime, timezone

from fieldops.models import db


APP_ROLES = frozenset({
    "admin",
    "super_admin",
    "field_staff",
    "opx",
    "hub_admin",
    "tps",
    "user",
})


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    full_name = db.Column(db.String(200))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user_roles = db.relationship(
        "UserRole", back_populates="user", lazy="selectin",
        foreign_keys="UserRole.user_id",
        cascade="all, delete-orphan",
    )

    @property
    def role_names(self) -> frozenset[str]:
        return frozenset(ur.role for ur in self.user_roles)

    def to_dict(self, include_roles=False):
        d = {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_roles:
            d["roles"] = sorted(self.role_names)
        return d

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"


class UserRole(db.Model):
    __tablename__ = "user_roles"
    __table_args__ = (
        db.UniqueConstraint("user_id", "role", name="uq_user_role"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = db.Column(db.String(30), nullable=False)
    granted_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user = db.relationship("User", back_populates="user_roles", foreign_keys=[user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "granted_by": self.granted_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
