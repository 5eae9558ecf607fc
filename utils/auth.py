"""Authorization gate for protected views.

A request moves through ``token present -> token valid -> identity resolved ->
authorized``; each step has its own 401 message. The result is an
``Identity`` value that the decorators hand to the view as the ``identity``
keyword argument. Nothing is stored on ``flask.g`` or the request.

Usage::

    @bp.route("/things")
    @require_auth
    @require_roles("admin")
    def list_things(identity: Identity): ...
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Callable

from flask import current_app, request
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import ExpiredSignatureError, InvalidTokenError
from werkzeug.exceptions import Forbidden, HTTPException, Unauthorized

from models import db
from models.user import User
from utils.retry import retry_on_db_error

MISSING_TOKEN = "Authentication required. Please log in."
INVALID_TOKEN = "Invalid authentication token."
EXPIRED_TOKEN = "Your session has expired. Please log in again."
UNKNOWN_USER = "The user belonging to this token no longer exists."
INACTIVE_USER = "Your account has been deactivated. Contact support."
STALE_TOKEN = "Password recently changed. Please log in again."


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as resolved from the store for this request."""

    id: int
    email: str
    role: str
    name: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(id=user.id, email=user.email, role=user.role, name=user.name)


def _bearer_token(header: str | None) -> str:
    if not header or not header.startswith("Bearer "):
        raise Unauthorized(MISSING_TOKEN)
    token = header[len("Bearer "):].strip()
    if not token:
        raise Unauthorized(MISSING_TOKEN)
    return token


def _decode(token: str) -> dict:
    try:
        claims = decode_token(token)
    except ExpiredSignatureError:
        raise Unauthorized(EXPIRED_TOKEN)
    except (InvalidTokenError, JWTExtendedException):
        raise Unauthorized(INVALID_TOKEN)
    if claims.get("type") != "access":
        raise Unauthorized(INVALID_TOKEN)
    return claims


@retry_on_db_error()
def _load_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def authenticate(header: str | None) -> Identity:
    """Run the full gate against an ``Authorization`` header value."""

    claims = _decode(_bearer_token(header))

    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise Unauthorized(INVALID_TOKEN)

    user = _load_user(user_id)
    if user is None:
        raise Unauthorized(UNKNOWN_USER)
    if not user.is_active:
        raise Unauthorized(INACTIVE_USER)

    issued_at = claims.get("auth_time", claims.get("iat"))
    if not isinstance(issued_at, (int, float)):
        raise Unauthorized(INVALID_TOKEN)
    if user.password_changed_after(float(issued_at)):
        raise Unauthorized(STALE_TOKEN)

    return Identity.from_user(user)


def require_auth(view: Callable) -> Callable:
    """Reject the request unless it carries a valid access token."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        identity = authenticate(request.headers.get("Authorization"))
        return view(*args, identity=identity, **kwargs)

    return wrapper


def require_roles(*roles: str) -> Callable:
    """Restrict a view already wrapped by ``require_auth`` to the given roles."""

    allowed = set(roles)

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args, identity: Identity, **kwargs):
            if identity.role not in allowed:
                raise Forbidden(
                    f"Access denied. This action requires {' or '.join(roles)} privileges."
                )
            return view(*args, identity=identity, **kwargs)

        return wrapper

    return decorator


def optional_auth(view: Callable) -> Callable:
    """Pass the caller's identity when the token checks out, otherwise ``None``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        identity = None
        header = request.headers.get("Authorization")
        if header:
            try:
                identity = authenticate(header)
            except HTTPException as error:
                current_app.logger.debug("Optional auth ignored: %s", error.description)
        return view(*args, identity=identity, **kwargs)

    return wrapper
