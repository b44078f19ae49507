"""
Scope Store — ops-area → hub routing data, actor assignments, global policy.

Reads are served from an in-process binding map cached with a TTL
(``SCOPE_CACHE_TTL`` seconds) behind a lock.  Every mutation invalidates the
cache.  Administrative mutations take the acting user explicitly and require
``admin`` or ``super_admin``; granting or revoking ``super_admin`` requires
``super_admin``.

Mutations commit their own transaction.
"""

import logging
import threading
import time
from datetime import datetime, timezone

from flask import current_app, has_app_context

from fieldops.core.exceptions import (
    Forbidden,
    InvalidPayload,
    NotFoundError,
    UnconfiguredArea,
)
from fieldops.models import db
from fieldops.models.auth import APP_ROLES, User, UserRole
from fieldops.models.scope import (
    DEFAULT_SETTINGS,
    AppSetting,
    HubAdminAssignment,
    OpsAreaHub,
    OpxAreaAssignment,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 60

# (cached_at, {ops_area: hub})
_binding_cache: dict[str, tuple[float, dict[str, str]]] = {}
_cache_lock = threading.Lock()
_CACHE_KEY = "bindings"


def _cache_ttl() -> float:
    if has_app_context():
        return current_app.config.get("SCOPE_CACHE_TTL", DEFAULT_CACHE_TTL)
    return DEFAULT_CACHE_TTL


def invalidate_cache() -> None:
    with _cache_lock:
        _binding_cache.clear()


def _bindings() -> dict[str, str]:
    ttl = _cache_ttl()
    with _cache_lock:
        entry = _binding_cache.get(_CACHE_KEY)
        if entry is not None and time.time() - entry[0] < ttl:
            return entry[1]

    mapping = {row.ops_area: row.hub for row in OpsAreaHub.query.all()}
    with _cache_lock:
        _binding_cache[_CACHE_KEY] = (time.time(), mapping)
    return mapping


# ═══════════════════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════════════════


def hub_for(ops_area: str) -> str:
    """Return the hub serving *ops_area*; ``UnconfiguredArea`` if unbound."""
    hub = _bindings().get(ops_area)
    if hub is None:
        logger.error("No hub binding for operating area %r", ops_area)
        raise UnconfiguredArea(ops_area)
    return hub


def all_ops_areas() -> list[str]:
    return sorted(_bindings())


def all_hubs() -> list[str]:
    return sorted(set(_bindings().values()))


def areas_for_hubs(hubs) -> list[str]:
    """Operating areas served by any of *hubs*."""
    hubs = set(hubs)
    return sorted(area for area, hub in _bindings().items() if hub in hubs)


def list_bindings() -> list[dict]:
    return [{"ops_area": area, "hub": hub} for area, hub in sorted(_bindings().items())]


def active_areas_for(user_id: int) -> frozenset[str]:
    rows = OpxAreaAssignment.query.filter_by(user_id=user_id, is_active=True).all()
    return frozenset(r.ops_area for r in rows)


def active_hubs_for(user_id: int) -> frozenset[str]:
    rows = HubAdminAssignment.query.filter_by(user_id=user_id, is_active=True).all()
    return frozenset(r.hub for r in rows)


def get_setting(key: str):
    row = AppSetting.query.filter_by(key=key).first()
    if row is None or row.value is None:
        return DEFAULT_SETTINGS.get(key)
    return row.value


def list_settings() -> dict:
    values = dict(DEFAULT_SETTINGS)
    for row in AppSetting.query.all():
        values[row.key] = row.value
    return values


# ═══════════════════════════════════════════════════════════════════════════
# Administrative mutations
# ═══════════════════════════════════════════════════════════════════════════


def _require_admin(actor):
    from fieldops.services.role_resolver import resolve

    caps = resolve(actor)
    if not caps.is_admin:
        raise Forbidden("Administrator role required")
    return caps


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def _clean(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f"{field} is required", details={field: "required"})
    return value.strip()


# ── Bindings ─────────────────────────────────────────────────────────────


def set_binding(actor, ops_area: str, hub: str) -> OpsAreaHub:
    """Create or move an ops_area → hub binding."""
    _require_admin(actor)
    ops_area = _clean(ops_area, "ops_area")
    hub = _clean(hub, "hub")

    row = OpsAreaHub.query.filter_by(ops_area=ops_area).first()
    if row is None:
        row = OpsAreaHub(ops_area=ops_area, hub=hub, updated_by=actor.id)
        db.session.add(row)
    else:
        row.hub = hub
        row.updated_by = actor.id
    db.session.commit()
    invalidate_cache()
    logger.info("Binding set: %s → %s", ops_area, hub, extra={"actor_id": actor.id})
    return row


def remove_binding(actor, ops_area: str) -> None:
    _require_admin(actor)
    row = OpsAreaHub.query.filter_by(ops_area=ops_area).first()
    if row is None:
        raise NotFoundError("Binding", ops_area)
    db.session.delete(row)
    db.session.commit()
    invalidate_cache()
    logger.info("Binding removed: %s", ops_area, extra={"actor_id": actor.id})


# ── Assignments ──────────────────────────────────────────────────────────


def assign_area(actor, user_id: int, ops_area: str) -> OpxAreaAssignment:
    """Give *user_id* reviewer scope over *ops_area*.  Idempotent."""
    _require_admin(actor)
    _get_user(user_id)
    ops_area = _clean(ops_area, "ops_area")
    hub_for(ops_area)

    row = OpxAreaAssignment.query.filter_by(
        user_id=user_id, ops_area=ops_area, is_active=True,
    ).first()
    if row is None:
        row = OpxAreaAssignment(user_id=user_id, ops_area=ops_area, assigned_by=actor.id)
        db.session.add(row)
        db.session.commit()
        logger.info("Area %s assigned to user %s", ops_area, user_id, extra={"actor_id": actor.id})
    return row


def revoke_area(actor, user_id: int, ops_area: str) -> int:
    _require_admin(actor)
    rows = OpxAreaAssignment.query.filter_by(
        user_id=user_id, ops_area=ops_area, is_active=True,
    ).all()
    if not rows:
        raise NotFoundError("OpxAreaAssignment", f"{user_id}/{ops_area}")
    for row in rows:
        row.revoke()
    db.session.commit()
    logger.info("Area %s revoked from user %s", ops_area, user_id, extra={"actor_id": actor.id})
    return len(rows)


def assign_hub(actor, user_id: int, hub: str) -> HubAdminAssignment:
    """Give *user_id* fulfillment scope over *hub*.  Idempotent."""
    _require_admin(actor)
    _get_user(user_id)
    hub = _clean(hub, "hub")
    if hub not in all_hubs():
        raise InvalidPayload(f"Unknown hub '{hub}'", details={"hub": "no operating area is bound to this hub"})

    row = HubAdminAssignment.query.filter_by(user_id=user_id, hub=hub, is_active=True).first()
    if row is None:
        row = HubAdminAssignment(user_id=user_id, hub=hub, assigned_by=actor.id)
        db.session.add(row)
        db.session.commit()
        logger.info("Hub %s assigned to user %s", hub, user_id, extra={"actor_id": actor.id})
    return row


def revoke_hub(actor, user_id: int, hub: str) -> int:
    _require_admin(actor)
    rows = HubAdminAssignment.query.filter_by(user_id=user_id, hub=hub, is_active=True).all()
    if not rows:
        raise NotFoundError("HubAdminAssignment", f"{user_id}/{hub}")
    for row in rows:
        row.revoke()
    db.session.commit()
    logger.info("Hub %s revoked from user %s", hub, user_id, extra={"actor_id": actor.id})
    return len(rows)


# ── Roles ────────────────────────────────────────────────────────────────


def _check_role_change(actor, role: str) -> None:
    caps = _require_admin(actor)
    if role not in APP_ROLES:
        raise InvalidPayload(f"Unknown role '{role}'", details={"role": f"must be one of {sorted(APP_ROLES)}"})
    if role == "super_admin" and not caps.is_super_admin:
        raise Forbidden("Only a super_admin may grant or revoke super_admin")


def grant_role(actor, user_id: int, role: str) -> UserRole:
    _check_role_change(actor, role)
    user = _get_user(user_id)
    row = UserRole.query.filter_by(user_id=user.id, role=role).first()
    if row is None:
        row = UserRole(user_id=user.id, role=role, granted_by=actor.id)
        db.session.add(row)
        db.session.commit()
        db.session.refresh(user)
        logger.info("Role %s granted to user %s", role, user_id, extra={"actor_id": actor.id})
    return row


def revoke_role(actor, user_id: int, role: str) -> None:
    _check_role_change(actor, role)
    user = _get_user(user_id)
    row = UserRole.query.filter_by(user_id=user.id, role=role).first()
    if row is None:
        raise NotFoundError("UserRole", f"{user_id}/{role}")
    db.session.delete(row)
    db.session.commit()
    db.session.refresh(user)
    logger.info("Role %s revoked from user %s", role, user_id, extra={"actor_id": actor.id})


# ── Global policy ────────────────────────────────────────────────────────


def _validate_setting(key: str, value):
    if key not in DEFAULT_SETTINGS:
        raise InvalidPayload(f"Unknown setting '{key}'", details={"key": f"must be one of {sorted(DEFAULT_SETTINGS)}"})
    if key == "opx_reminder_hours":
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidPayload("opx_reminder_hours must be a positive integer",
                                 details={"value": "positive integer required"})
    return value


def set_setting(actor, key: str, value) -> AppSetting:
    _require_admin(actor)
    value = _validate_setting(key, value)
    row = AppSetting.query.filter_by(key=key).first()
    if row is None:
        row = AppSetting(key=key, value=value, updated_by=actor.id)
        db.session.add(row)
    else:
        row.value = value
        row.updated_by = actor.id
        row.updated_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Setting %s updated", key, extra={"actor_id": actor.id})
    return row
