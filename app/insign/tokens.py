"""
Bearer-token identity for the public JSON API.

Clients send ``Authorization: Bearer <jwt>``; the token is HS256-signed with
JWT_SECRET and carries the user id in ``sub``. Anything that does not verify
resolves to "no identity", which the endpoint turns into a 401.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any

import jwt
from flask import current_app, g, request

from app.insign.errors import UnauthorizedError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "


def create_access_token(
    user_id: int,
    *,
    secret: str | None = None,
    expires_in: timedelta | None = None,
) -> str:
    secret = secret or current_app.config["JWT_SECRET"]
    if expires_in is None:
        expires_in = timedelta(days=int(current_app.config.get("JWT_EXPIRES_IN_DAYS") or 7))
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_user_id(token: str, secret: str) -> int | None:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            # Older mobile builds were issued numeric subjects.
            options={"verify_sub": False},
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None

    sub = payload.get("sub")
    # Only whole numbers; floats and "1.9" are not truncated.
    if isinstance(sub, int) and not isinstance(sub, bool):
        user_id = sub
    elif isinstance(sub, str) and sub.isascii() and sub.isdigit():
        user_id = int(sub)
    else:
        return None
    return user_id if user_id > 0 else None


def extract_user_id(authorization: str | None) -> int | None:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        return None
    return decode_user_id(token, current_app.config["JWT_SECRET"])


def bearer_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Resolve g.api_user_id from the Authorization header or fail with 401."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user_id = extract_user_id(request.headers.get("Authorization"))
        if user_id is None:
            logger.debug("Rejected bearer request path=%s", request.path)
            raise UnauthorizedError()
        g.api_user_id = user_id
        return fn(*args, **kwargs)

    return wrapped
