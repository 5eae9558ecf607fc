"""Database initialization and model exports."""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime, the form stored in the database."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


# Import models to register them with SQLAlchemy metadata.
from .user import User  # noqa: E402,F401
from .task import Task  # noqa: E402,F401

__all__ = [
    "db",
    "utcnow",
    "User",
    "Task",
]
