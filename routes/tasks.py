"""Tasks blueprint with filtering, CRUD, stats, and archiving."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, request
from werkzeug.exceptions import Forbidden, NotFound

from models import db
from models.task import Task
from services.commands import TaskCreate, TaskQuery, TaskUpdate
from services.tasks import list_tasks, task_stats
from utils.auth import Identity, require_auth
from utils.request_validation import parse_json_request
from utils.responses import send_success

tasks_bp = Blueprint("tasks", __name__)


def _get_task_for(task_id: int, identity: Identity, action: str) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found.")
    if not identity.is_admin and task.owner_id != identity.id:
        raise Forbidden(f"You do not have permission to {action} this task.")
    return task


@tasks_bp.route("/stats", methods=["GET"])
@require_auth
def get_task_stats(identity: Identity):
    """Counts by status for the caller, or platform-wide for admins."""

    stats = task_stats(None if identity.is_admin else identity.id)
    return send_success("Stats retrieved successfully", stats=stats)


@tasks_bp.route("", methods=["GET"])
@require_auth
def get_tasks(identity: Identity):
    """Return tasks with optional filters, sorting and pagination."""

    query = TaskQuery.from_args(request.args)
    tasks, total = list_tasks(query, identity.id, identity.is_admin)
    return send_success(
        "Tasks retrieved successfully",
        meta={"pagination": query.pagination.meta(total)},
        tasks=[task.to_dict() for task in tasks],
    )


@tasks_bp.route("", methods=["POST"])
@require_auth
def create_task(identity: Identity):
    command = TaskCreate.from_payload(parse_json_request(request))

    task = Task(
        owner_id=identity.id,
        title=command.title,
        description=command.description,
        status=command.status,
        priority=command.priority,
        due_date=command.due_date,
        tags=list(command.tags),
    )
    db.session.add(task)
    db.session.commit()

    current_app.logger.info('Task created: "%s" by user %s', task.title, identity.email)
    return send_success("Task created successfully!", HTTPStatus.CREATED, task=task.to_dict())


@tasks_bp.route("/<int:task_id>", methods=["GET"])
@require_auth
def get_task(task_id: int, identity: Identity):
    task = _get_task_for(task_id, identity, "view")
    return send_success("Task retrieved successfully", task=task.to_dict())


@tasks_bp.route("/<int:task_id>", methods=["PUT"])
@require_auth
def update_task(task_id: int, identity: Identity):
    task = _get_task_for(task_id, identity, "update")
    command = TaskUpdate.from_payload(parse_json_request(request))

    command.apply(task)
    db.session.commit()
    return send_success("Task updated successfully!", task=task.to_dict())


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id: int, identity: Identity):
    task = _get_task_for(task_id, identity, "delete")
    title = task.title

    db.session.delete(task)
    db.session.commit()

    current_app.logger.info('Task deleted: "%s" by user %s', title, identity.email)
    return send_success("Task deleted successfully.")


@tasks_bp.route("/<int:task_id>/archive", methods=["PATCH"])
@require_auth
def archive_task(task_id: int, identity: Identity):
    """Toggle the archived flag."""

    task = _get_task_for(task_id, identity, "archive")
    task.is_archived = not task.is_archived
    db.session.commit()

    state = "archived" if task.is_archived else "unarchived"
    return send_success(f"Task {state} successfully.", task=task.to_dict())
