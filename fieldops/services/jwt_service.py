"""
JWT Service — access tokens identifying the calling actor.

Only the actor's id travels in the token (``sub``, as a string).  Roles and
area/hub assignments are resolved from the database on every request, so a
revocation takes effect on the next call rather than at token expiry.

    token = generate_access_token(user.id)
    payload = decode_access_token(token)      # raises jwt.InvalidTokenError
    user_id = int(payload["sub"])
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
TOKEN_TYPE = "access"
DEFAULT_ACCESS_EXPIRES = 900


def _signing_key() -> str:
    cfg = current_app.config
    return cfg.get("JWT_SECRET_KEY") or cfg["SECRET_KEY"]


def generate_access_token(user_id: int, expires_in: int | None = None) -> str:
    """Sign a token for *user_id* valid for *expires_in* seconds."""
    lifetime = expires_in or current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "type": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + timedelta(seconds=lifetime),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify signature, expiry and token type.

    Raises ``jwt.ExpiredSignatureError`` or ``jwt.InvalidTokenError``.
    """
    claims = jwt.decode(token, _signing_key(), algorithms=[ALGORITHM])
    if claims.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError(f"Expected an access token, got {claims.get('type')!r}")
    return claims
