"""HTTP error types raised by services and routes."""

from __future__ import annotations

from typing import Iterable

from werkzeug.exceptions import BadRequest, ServiceUnavailable


class ValidationFailed(BadRequest):
    """A 400 carrying every failing field, not just the first."""

    def __init__(self, errors: Iterable[dict], description: str = "Validation failed."):
        super().__init__(description)
        self.errors = list(errors)


class StoreUnavailable(ServiceUnavailable):
    """The database did not answer in time; the client may retry."""

    def __init__(
        self,
        description: str = "The service is temporarily unavailable. Please retry shortly.",
        retry_after: int = 5,
    ):
        super().__init__(description, retry_after=retry_after)


def field_error(field: str, message: str, value=None) -> dict:
    error = {"field": field, "message": message}
    if value is not None and field not in {"password", "newPassword", "currentPassword"}:
        error["value"] = value
    return error
