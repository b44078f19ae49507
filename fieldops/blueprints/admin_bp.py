"""
Administration Blueprint — routing data, assignments, roles, global policy.

Routes:
  GET    /admin/bindings                       – list ops_area → hub bindings
  PUT    /admin/bindings/<ops_area>            – create / move binding   {hub}
  DELETE /admin/bindings/<ops_area>            – remove binding
  GET    /admin/users/<uid>                    – user with roles and scope
  POST   /admin/users/<uid>/areas              – assign OPX area         {ops_area}
  DELETE /admin/users/<uid>/areas/<ops_area>   – revoke OPX area
  POST   /admin/users/<uid>/hubs               – assign hub              {hub}
  DELETE /admin/users/<uid>/hubs/<hub>         – revoke hub
  POST   /admin/users/<uid>/roles              – grant role              {role}
  DELETE /admin/users/<uid>/roles/<role>       – revoke role
  GET    /admin/settings                       – global policy values
  PUT    /admin/settings/<key>                 – update one value        {value}

Every route requires admin or super_admin; the scope store enforces it.
"""

from flask import Blueprint, jsonify, request

from fieldops.blueprints import current_actor
from fieldops.core.exceptions import Forbidden, NotFoundError
from fieldops.models import db
from fieldops.models.auth import User
from fieldops.services import role_resolver, scope_store
from fieldops.utils.errors import register_workflow_error_handlers

admin_bp = Blueprint("admin_bp", __name__, url_prefix="/api/v1/admin")
register_workflow_error_handlers(admin_bp)


# ── helpers ──────────────────────────────────────────────────────────────

def _body():
    return request.get_json(silent=True) or {}


def _admin():
    actor = current_actor()
    if not role_resolver.resolve(actor).is_admin:
        raise Forbidden("Administrator role required")
    return actor


# ═════════════════════════════════════════════════════════════════════════════
# BINDINGS
# ═════════════════════════════════════════════════════════════════════════════

@admin_bp.route("/bindings", methods=["GET"])
def list_bindings():
    _admin()
    return jsonify(scope_store.list_bindings())


@admin_bp.route("/bindings/<ops_area>", methods=["PUT"])
def set_binding(ops_area):
    actor = current_actor()
    row = scope_store.set_binding(actor, ops_area, _body().get("hub"))
    return jsonify(row.to_dict())


@admin_bp.route("/bindings/<ops_area>", methods=["DELETE"])
def remove_binding(ops_area):
    actor = current_actor()
    scope_store.remove_binding(actor, ops_area)
    return jsonify({"deleted": ops_area})


# ═════════════════════════════════════════════════════════════════════════════
# USERS — assignments and roles
# ═════════════════════════════════════════════════════════════════════════════

@admin_bp.route("/users/<int:uid>", methods=["GET"])
def get_user(uid):
    _admin()
    user = db.session.get(User, uid)
    if user is None:
        raise NotFoundError("User", uid)
    d = user.to_dict(include_roles=True)
    d["capabilities"] = role_resolver.resolve(user).to_dict()
    return jsonify(d)


@admin_bp.route("/users/<int:uid>/areas", methods=["POST"])
def assign_area(uid):
    actor = current_actor()
    row = scope_store.assign_area(actor, uid, _body().get("ops_area"))
    return jsonify(row.to_dict()), 201


@admin_bp.route("/users/<int:uid>/areas/<ops_area>", methods=["DELETE"])
def revoke_area(uid, ops_area):
    actor = current_actor()
    count = scope_store.revoke_area(actor, uid, ops_area)
    return jsonify({"revoked": count})


@admin_bp.route("/users/<int:uid>/hubs", methods=["POST"])
def assign_hub(uid):
    actor = current_actor()
    row = scope_store.assign_hub(actor, uid, _body().get("hub"))
    return jsonify(row.to_dict()), 201


@admin_bp.route("/users/<int:uid>/hubs/<hub>", methods=["DELETE"])
def revoke_hub(uid, hub):
    actor = current_actor()
    count = scope_store.revoke_hub(actor, uid, hub)
    return jsonify({"revoked": count})


@admin_bp.route("/users/<int:uid>/roles", methods=["POST"])
def grant_role(uid):
    actor = current_actor()
    row = scope_store.grant_role(actor, uid, _body().get("role"))
    return jsonify(row.to_dict()), 201


@admin_bp.route("/users/<int:uid>/roles/<role>", methods=["DELETE"])
def revoke_role(uid, role):
    actor = current_actor()
    scope_store.revoke_role(actor, uid, role)
    return jsonify({"revoked": role})


# ═════════════════════════════════════════════════════════════════════════════
# SETTINGS
# ═════════════════════════════════════════════════════════════════════════════

@admin_bp.route("/settings", methods=["GET"])
def list_settings():
    _admin()
    return jsonify(scope_store.list_settings())


@admin_bp.route("/settings/<key>", methods=["PUT"])
def set_setting(key):
    actor = current_actor()
    row = scope_store.set_setting(actor, key, _body().get("value"))
    return jsonify(row.to_dict())
