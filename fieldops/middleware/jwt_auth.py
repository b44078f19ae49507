"""
Bearer-token middleware.

Sets ``g.jwt_user_id`` from a valid access token, else leaves it ``None``.
It never loads the actor: blueprints fetch the User row themselves through
``current_actor()`` and answer 401 when there is none, so roles are always
read fresh from the database.
"""

import logging

import jwt as pyjwt
from flask import g, request

from fieldops.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/"
PUBLIC_PREFIXES = ("/api/v1/health",)


def _bearer_token():
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token:
        return None
    return token.strip()


def _needs_auth(path):
    return path.startswith(API_PREFIX) and not path.startswith(PUBLIC_PREFIXES)


def init_jwt_middleware(app):
    """Register the token check as a before_request hook."""

    @app.before_request
    def _identify_actor():
        g.jwt_user_id = None
        if not _needs_auth(request.path):
            return

        token = _bearer_token()
        if token is None:
            return

        try:
            g.jwt_user_id = int(decode_access_token(token)["sub"])
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token")
        except (pyjwt.InvalidTokenError, KeyError, ValueError) as exc:
            logger.warning("Rejected access token: %s", exc)
