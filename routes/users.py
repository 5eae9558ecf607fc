"""Profile endpoints for the signed-in user."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from models import db
from models.task import Task
from services import sessions
from services.commands import ProfileUpdate
from utils.auth import Identity, require_auth
from utils.request_validation import parse_json_request
from utils.responses import send_success

users_bp = Blueprint("users", __name__)


@users_bp.route("/profile", methods=["GET"])
@require_auth
def get_profile(identity: Identity):
    user = sessions.get_user(identity)
    task_count = Task.query.filter_by(owner_id=user.id, is_archived=False).count()
    return send_success(
        "Profile retrieved successfully",
        user={**user.to_dict(), "taskCount": task_count},
    )


@users_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile(identity: Identity):
    """Rename the account; no other profile field is writable."""

    command = ProfileUpdate.from_payload(parse_json_request(request, allow_empty=True))
    user = sessions.get_user(identity)
    user.name = command.name
    db.session.commit()
    return send_success("Profile updated successfully!", user=user.to_dict())


@users_bp.route("/profile", methods=["DELETE"])
@require_auth
def deactivate_account(identity: Identity):
    user = sessions.get_user(identity)
    user.is_active = False
    user.clear_refresh_token()
    db.session.commit()

    current_app.logger.info("Account deactivated: %s", identity.email)
    return send_success("Account deactivated successfully.")
