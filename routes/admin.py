"""Admin blueprint for user oversight and platform statistics."""

from __future__ import annotations

from flask import Blueprint, current_app, request
from sqlalchemy import case, delete, func, or_, select
from werkzeug.exceptions import BadRequest, NotFound

from models import db
from models.task import Task
from models.user import User
from services.commands import AdminUserUpdate, UserQuery
from services.tasks import status_breakdown
from utils.auth import Identity, require_auth, require_roles
from utils.request_validation import parse_json_request
from utils.responses import send_success

admin_bp = Blueprint("admin", __name__)


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def _count_if(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


@admin_bp.route("/stats", methods=["GET"])
@require_auth
@require_roles("admin")
def get_platform_stats(identity: Identity):
    total, active, admins, users = db.session.execute(
        select(
            func.count(User.id),
            _count_if(User.is_active.is_(True)),
            _count_if(User.role == "admin"),
            _count_if(User.role == "user"),
        )
    ).one()
    task_total, todo, in_progress, completed = db.session.execute(
        select(
            func.count(Task.id),
            _count_if(Task.status == "todo"),
            _count_if(Task.status == "in-progress"),
            _count_if(Task.status == "completed"),
        )
    ).one()
    recent_users = User.query.order_by(User.created_at.desc(), User.id.desc()).limit(5).all()
    recent_tasks = Task.query.order_by(Task.created_at.desc(), Task.id.desc()).limit(5).all()

    return send_success(
        "Platform stats retrieved successfully",
        users={"total": total, "active": active, "admins": admins, "users": users},
        tasks={
            "total": task_total,
            "todo": todo,
            "inProgress": in_progress,
            "completed": completed,
        },
        recentUsers=[user.to_dict() for user in recent_users],
        recentTasks=[task.to_dict() for task in recent_tasks],
    )


@admin_bp.route("/users", methods=["GET"])
@require_auth
@require_roles("admin")
def list_users(identity: Identity):
    query = UserQuery.from_args(request.args)
    pagination = query.pagination

    stmt = select(User)
    if query.role:
        stmt = stmt.where(User.role == query.role)
    if query.is_active is not None:
        stmt = stmt.where(User.is_active.is_(query.is_active))
    if query.search:
        like = f"%{query.search}%"
        stmt = stmt.where(or_(func.lower(User.name).like(like), func.lower(User.email).like(like)))

    total = db.session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    users = db.session.execute(
        stmt.order_by(User.created_at.desc(), User.id.desc())
        .offset(pagination.offset)
        .limit(pagination.limit)
    ).scalars()

    meta = pagination.meta(total)
    return send_success(
        "Users retrieved successfully",
        meta={"pagination": {key: meta[key] for key in ("total", "page", "limit", "pages")}},
        users=[user.to_dict() for user in users],
    )


@admin_bp.route("/users/<int:user_id>", methods=["GET"])
@require_auth
@require_roles("admin")
def get_user(user_id: int, identity: Identity):
    user = _get_user_or_404(user_id)
    return send_success(
        "User retrieved successfully",
        user=user.to_dict(),
        taskStats=status_breakdown(user.id),
    )


@admin_bp.route("/users/<int:user_id>", methods=["PATCH"])
@require_auth
@require_roles("admin")
def update_user(user_id: int, identity: Identity):
    """Change another user's role or active flag."""

    if user_id == identity.id:
        raise BadRequest("Admins cannot modify their own admin status.")

    command = AdminUserUpdate.from_payload(parse_json_request(request, allow_empty=True))
    user = _get_user_or_404(user_id)

    if command.role is not None:
        user.role = command.role
    if command.is_active is not None:
        user.is_active = command.is_active
        if not command.is_active:
            user.clear_refresh_token()
    db.session.commit()

    current_app.logger.info(
        "Admin %s updated user %s: %s", identity.email, user.email, command.changes()
    )
    return send_success("User updated successfully!", user=user.to_dict())


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@require_auth
@require_roles("admin")
def delete_user(user_id: int, identity: Identity):
    """Delete a user together with every task they own."""

    if user_id == identity.id:
        raise BadRequest("Admins cannot delete themselves.")

    user = _get_user_or_404(user_id)
    email = user.email
    deleted_tasks = db.session.execute(
        delete(Task).where(Task.owner_id == user.id).execution_options(synchronize_session=False)
    ).rowcount
    db.session.delete(user)
    db.session.commit()

    current_app.logger.info(
        "Admin %s deleted user %s and %d tasks", identity.email, email, deleted_tasks
    )
    return send_success(f"User deleted successfully along with {deleted_tasks} tasks.")
