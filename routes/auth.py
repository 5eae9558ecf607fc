"""Authentication blueprint: registration, login, token rotation and password change."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, request

from services import sessions
from services.commands import LoginCommand, PasswordUpdateCommand, RegisterCommand
from utils.auth import Identity, require_auth
from utils.request_validation import parse_json_request
from utils.responses import send_success

auth_bp = Blueprint("auth", __name__)


def _auth_response(result: sessions.AuthResult, message: str, status: int = HTTPStatus.OK):
    return send_success(
        message,
        status,
        user=result.user.to_dict(),
        **result.tokens.to_dict(),
    )


@auth_bp.route("/register", methods=["POST"])
def register():
    """Create an account and sign it in."""
    command = RegisterCommand.from_payload(parse_json_request(request))
    result = sessions.register(command)
    return _auth_response(result, "Account created successfully!", HTTPStatus.CREATED)


@auth_bp.route("/login", methods=["POST"])
def login():
    command = LoginCommand.from_payload(parse_json_request(request))
    result = sessions.login(command)
    return _auth_response(result, "Login successful!")


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """Trade a refresh token for a new access/refresh pair."""
    payload = parse_json_request(request, allow_empty=True)
    tokens = sessions.refresh(payload.get("refreshToken"))
    return send_success("Token refreshed successfully", **tokens.to_dict())


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout(identity: Identity):
    sessions.logout(identity)
    return send_success("Logged out successfully.")


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me(identity: Identity):
    user = sessions.get_user(identity)
    return send_success("User retrieved successfully", user=user.to_dict())


@auth_bp.route("/update-password", methods=["PUT"])
@require_auth
def update_password(identity: Identity):
    command = PasswordUpdateCommand.from_payload(parse_json_request(request))
    result = sessions.update_password(identity, command)
    return _auth_response(result, "Password updated successfully!")
