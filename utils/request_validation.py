"""Utilities for validating incoming Flask requests."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from flask import Request
from werkzeug.exceptions import BadRequest

from utils.errors import field_error

EMAIL_PATTERN = re.compile(r"^[\w+-]+(\.[\w+-]+)*@[\w-]+(\.[\w-]+)*\.[A-Za-z]{2,}$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
MAX_EMAIL_LENGTH = 100
MIN_PASSWORD_LENGTH = 8


def parse_json_request(
    req: Request,
    *,
    allow_empty: bool = False,
) -> dict:
    """Return the parsed JSON body or raise a 400 error."""

    if not req.is_json:
        raise BadRequest("Request content type must be application/json.")

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request JSON body is required.")

    if not isinstance(data, dict):
        raise BadRequest("Request JSON payload must be an object.")

    if not data and not allow_empty:
        raise BadRequest("Request JSON body must not be empty.")

    return data


def normalize_email(raw_email: object) -> str:
    """Normalize an email string by stripping whitespace and lowering case."""
    if not isinstance(raw_email, str):
        return ""
    return raw_email.strip().lower()


def check_name(errors: list[dict], value: object, *, field: str = "name") -> str:
    name = value.strip() if isinstance(value, str) else ""
    if not name:
        errors.append(field_error(field, "Name is required"))
    elif not 2 <= len(name) <= 50:
        errors.append(field_error(field, "Name must be 2-50 characters", name))
    elif not NAME_PATTERN.match(name):
        errors.append(
            field_error(
                field,
                "Name can only contain letters, spaces, hyphens, and apostrophes",
                name,
            )
        )
    return name


def check_email(errors: list[dict], value: object, *, field: str = "email") -> str:
    email = normalize_email(value)
    if not email:
        errors.append(field_error(field, "Email is required"))
    elif len(email) > MAX_EMAIL_LENGTH:
        errors.append(field_error(field, "Email cannot exceed 100 characters"))
    elif not EMAIL_PATTERN.match(email):
        errors.append(field_error(field, "Please provide a valid email", email))
    return email


def check_new_password(errors: list[dict], value: object, *, field: str = "password") -> str:
    """Validate password strength; the value itself is never echoed back."""

    password = value if isinstance(value, str) else ""
    if not password:
        errors.append(field_error(field, "Password is required"))
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(field_error(field, "Password must be at least 8 characters"))
    elif not PASSWORD_PATTERN.match(password):
        errors.append(
            field_error(
                field,
                "Password must contain at least one uppercase letter, "
                "one lowercase letter, and one number",
            )
        )
    return password


def check_required_text(errors: list[dict], value: object, field: str, message: str) -> str:
    text = value if isinstance(value, str) else ""
    if not text:
        errors.append(field_error(field, message))
    return text


def parse_datetime(value: object) -> datetime | None:
    """Parse an ISO 8601 string into a naive UTC datetime; None if it cannot be parsed."""

    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_bool(value: object) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y"}:
        return True
    if text in {"0", "false", "no", "n"}:
        return False
    return None


def parse_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None
