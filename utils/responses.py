"""JSON response envelope shared by all blueprints."""

from __future__ import annotations

from http import HTTPStatus

from flask import jsonify


def send_success(message: str, status: int = HTTPStatus.OK, meta: dict | None = None, **data):
    """Return ``{"success": true, "message": ..., **data}`` with an optional ``meta`` block."""

    payload = {"success": True, "message": message, **data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status
