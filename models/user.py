"""User model definition."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import validates
from werkzeug.security import check_password_hash, generate_password_hash

from . import db, utcnow


ROLES = ("user", "admin")
DEFAULT_ROLE = "user"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def initials_for(name: str) -> str:
    """Return up to two uppercase initials for a display name."""

    return "".join(part[0] for part in (name or "").split() if part).upper()[:2]


class User(db.Model):
    """Represents a platform account and its session state."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=DEFAULT_ROLE, index=True)
    is_active = db.Column(
        db.Boolean,
        nullable=False,
        default=True,
        server_default=db.true(),
    )
    refresh_token = db.Column(db.String(64), unique=True, nullable=True)
    refresh_token_expiry = db.Column(db.DateTime, nullable=True)
    last_login = db.Column(db.DateTime, nullable=True)
    password_changed_at = db.Column(db.DateTime, nullable=True)
    avatar_initials = db.Column(db.String(2), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    tasks = db.relationship(
        "Task",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )

    @validates("email")
    def _normalize_email(self, key, value):
        return (value or "").strip().lower()

    @validates("name")
    def _sync_initials(self, key, value):
        value = (value or "").strip()
        self.avatar_initials = initials_for(value)
        return value

    def set_password(self, password: str) -> None:
        """Hash and store the password.

        The change time is only recorded for existing accounts; a freshly
        created user has no earlier tokens to invalidate.
        """

        self.password_hash = generate_password_hash(password)
        if self.id is not None:
            self.password_changed_at = utcnow()
        self.avatar_initials = initials_for(self.name)

    def check_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""

        return check_password_hash(self.password_hash, password)

    def password_changed_after(self, issued_at: float) -> bool:
        """Return True if the password changed after a token issued at ``issued_at`` (epoch seconds)."""

        if self.password_changed_at is None:
            return False
        changed_at = self.password_changed_at.replace(tzinfo=timezone.utc).timestamp()
        return changed_at > issued_at

    def clear_refresh_token(self) -> None:
        self.refresh_token = None
        self.refresh_token_expiry = None

    def to_dict(self) -> dict:
        """Serialize the redacted view of the user; secrets never leave the store."""

        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "avatarInitials": self.avatar_initials,
            "lastLogin": _isoformat(self.last_login),
            "passwordChangedAt": _isoformat(self.password_changed_at),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User {self.email}>"
