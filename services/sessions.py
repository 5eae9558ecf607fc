"""Session lifecycle: registration, login, token rotation, logout and password change.

Access tokens are signed JWTs issued through flask-jwt-extended. Besides the
subject they carry ``role``, ``email`` and ``auth_time``, the issue time with
sub-second precision that the authorization gate compares against
``User.password_changed_at``.

Refresh tokens are opaque random values stored on the user row. Only one is
live per user; every issue overwrites the previous value. Rotation and the
expiry purge are each a single conditional UPDATE keyed on the presented token,
so two racing refresh calls cannot both succeed.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta, timezone
from functools import lru_cache

from flask import current_app
from flask_jwt_extended import create_access_token
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import BadRequest, Conflict, Unauthorized
from werkzeug.security import check_password_hash, generate_password_hash

from models import db, utcnow
from models.user import DEFAULT_ROLE, User
from services.commands import LoginCommand, PasswordUpdateCommand, RegisterCommand

INVALID_CREDENTIALS = "Invalid email or password."
DUPLICATE_EMAIL = "An account with this email already exists."


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self) -> dict:
        return {"token": self.access_token, "refreshToken": self.refresh_token}


@dataclass(frozen=True)
class AuthResult:
    user: User
    tokens: TokenPair


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return generate_password_hash(uuid.uuid4().hex)


def _refresh_ttl() -> timedelta:
    return timedelta(days=int(current_app.config.get("REFRESH_TOKEN_TTL_DAYS", 30)))


def _new_refresh_token() -> str:
    return str(uuid.uuid4())


def find_user_by_email(email: str) -> User | None:
    return User.query.filter(func.lower(User.email) == email.strip().lower()).first()


def create_access_token_for(user: User) -> str:
    """Sign an access token for ``user`` with the configured lifetime."""

    issued_at = utcnow().replace(tzinfo=timezone.utc).timestamp()
    return create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role, "email": user.email, "auth_time": issued_at},
    )


def issue_tokens(user: User) -> TokenPair:
    """Issue a fresh access/refresh pair, replacing any stored refresh token.

    The caller commits the session.
    """

    refresh_token = _new_refresh_token()
    user.refresh_token = refresh_token
    user.refresh_token_expiry = utcnow() + _refresh_ttl()
    return TokenPair(access_token=create_access_token_for(user), refresh_token=refresh_token)


def register(command: RegisterCommand) -> AuthResult:
    if find_user_by_email(command.email) is not None:
        raise Conflict(DUPLICATE_EMAIL)

    user = User(name=command.name, email=command.email, role=DEFAULT_ROLE, is_active=True)
    user.set_password(command.password)
    db.session.add(user)
    try:
        db.session.flush()
        tokens = issue_tokens(user)
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same address.
        db.session.rollback()
        raise Conflict(DUPLICATE_EMAIL)

    current_app.logger.info("New user registered: %s", user.email)
    return AuthResult(user=user, tokens=tokens)


def login(command: LoginCommand) -> AuthResult:
    """Authenticate by email and password.

    Unknown email, wrong password and deactivated account all fail with the
    same message, and each path verifies a hash so response times match.
    """

    user = find_user_by_email(command.email)
    if user is None:
        check_password_hash(_dummy_password_hash(), command.password)
        current_app.logger.warning("Login failed for %s: unknown email", command.email)
        raise Unauthorized(INVALID_CREDENTIALS)

    password_ok = user.check_password(command.password)
    if not password_ok or not user.is_active:
        reason = "wrong password" if not password_ok else "account inactive"
        current_app.logger.warning("Login failed for %s: %s", command.email, reason)
        raise Unauthorized(INVALID_CREDENTIALS)

    user.last_login = utcnow()
    tokens = issue_tokens(user)
    db.session.commit()

    current_app.logger.info("User logged in: %s", user.email)
    return AuthResult(user=user, tokens=tokens)


def refresh(refresh_token: object) -> TokenPair:
    """Exchange a live refresh token for a new pair, invalidating the old one."""

    if not isinstance(refresh_token, str) or not refresh_token.strip():
        raise BadRequest("Refresh token is required.")

    now = utcnow()
    new_token = _new_refresh_token()
    rotated = db.session.execute(
        update(User)
        .where(
            User.refresh_token == refresh_token,
            User.refresh_token_expiry > now,
            User.is_active.is_(True),
        )
        .values(refresh_token=new_token, refresh_token_expiry=now + _refresh_ttl())
        .execution_options(synchronize_session=False)
    )

    if rotated.rowcount != 1:
        purged = db.session.execute(
            update(User)
            .where(
                User.refresh_token == refresh_token,
                or_(User.refresh_token_expiry.is_(None), User.refresh_token_expiry <= now),
            )
            .values(refresh_token=None, refresh_token_expiry=None)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        if purged.rowcount:
            raise Unauthorized("Refresh token expired. Please log in again.")
        raise Unauthorized("Invalid refresh token.")

    user = db.session.execute(
        select(User)
        .where(User.refresh_token == new_token)
        .execution_options(populate_existing=True)
    ).scalar_one()
    access_token = create_access_token_for(user)
    db.session.commit()
    return TokenPair(access_token=access_token, refresh_token=new_token)


def logout(identity) -> None:
    """Drop the stored refresh token; logging out twice is harmless."""

    db.session.execute(
        update(User)
        .where(User.id == identity.id)
        .values(refresh_token=None, refresh_token_expiry=None)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info("User logged out: %s", identity.email)


def get_user(identity) -> User:
    user = db.session.get(User, identity.id)
    if user is None:
        raise Unauthorized("The user belonging to this token no longer exists.")
    return user


def update_password(identity, command: PasswordUpdateCommand) -> AuthResult:
    """Change the password and hand back a new token pair.

    Setting the password stamps ``password_changed_at``, which retires every
    access token issued before it, including the one used for this call.
    """

    user = get_user(identity)
    if not user.check_password(command.current_password):
        raise BadRequest("Current password is incorrect.")
    if command.current_password == command.new_password:
        raise BadRequest("New password must be different from current password.")

    user.set_password(command.new_password)
    tokens = issue_tokens(user)
    db.session.commit()

    current_app.logger.info("Password updated for user: %s", user.email)
    return AuthResult(user=user, tokens=tokens)
