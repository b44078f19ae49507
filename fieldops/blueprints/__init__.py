"""
Field Ops Workflow Core
Blueprint registry and shared request helpers.
"""

from flask import abort, g, request

from fieldops.models import db
from fieldops.models.auth import User


def current_actor() -> User:
    """Load the authenticated actor for this request or abort with 401.

    The JWT middleware only sets ``g.jwt_user_id``; the User row is loaded
    here and handed to services explicitly.
    """
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        abort(401)
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        abort(401)
    return user


def page_args(default_limit=50, max_limit=500):
    """Parse limit/offset query params.

    Returns:
        (limit, offset)
    """
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset
