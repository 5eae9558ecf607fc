"""Typed, validated input structures.

Every command is built with ``from_payload`` (JSON bodies) or ``from_args``
(query strings). Validation walks all fields and raises a single
``ValidationFailed`` listing every problem, so clients can fix a form in one
round trip. Update commands name exactly the fields a caller may change;
anything else in the payload is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping, Optional

from werkzeug.exceptions import BadRequest

from models import utcnow
from models.task import MAX_TAG_LENGTH, MAX_TAGS, TASK_PRIORITIES, TASK_STATUSES
from models.user import ROLES
from utils.errors import ValidationFailed, field_error
from utils.request_validation import (
    check_email,
    check_name,
    check_new_password,
    check_required_text,
    parse_bool,
    parse_datetime,
    parse_int,
)

NO_FIELDS_MESSAGE = "No valid fields to update."
SORTABLE_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "dueDate": "due_date",
    "priority": "priority",
    "status": "status",
    "title": "title",
}
DUE_DATE_TOLERANCE = timedelta(minutes=1)


def _raise_if(errors: list[dict]) -> None:
    if errors:
        raise ValidationFailed(errors)


@dataclass(frozen=True)
class RegisterCommand:
    name: str
    email: str
    password: str

    @classmethod
    def from_payload(cls, data: Mapping) -> "RegisterCommand":
        errors: list[dict] = []
        name = check_name(errors, data.get("name"))
        email = check_email(errors, data.get("email"))
        password = check_new_password(errors, data.get("password"))
        _raise_if(errors)
        return cls(name=name, email=email, password=password)


@dataclass(frozen=True)
class LoginCommand:
    email: str
    password: str

    @classmethod
    def from_payload(cls, data: Mapping) -> "LoginCommand":
        errors: list[dict] = []
        email = check_email(errors, data.get("email"))
        password = check_required_text(errors, data.get("password"), "password", "Password is required")
        _raise_if(errors)
        return cls(email=email, password=password)


@dataclass(frozen=True)
class PasswordUpdateCommand:
    current_password: str
    new_password: str

    @classmethod
    def from_payload(cls, data: Mapping) -> "PasswordUpdateCommand":
        errors: list[dict] = []
        current = check_required_text(
            errors, data.get("currentPassword"), "currentPassword", "Current password is required"
        )
        new = check_new_password(errors, data.get("newPassword"), field="newPassword")
        _raise_if(errors)
        return cls(current_password=current, new_password=new)


def _check_title(errors: list[dict], value: object) -> str:
    title = value.strip() if isinstance(value, str) else ""
    if not 3 <= len(title) <= 100:
        errors.append(field_error("title", "Title must be 3-100 characters", value))
    return title


def _check_description(errors: list[dict], value: object) -> str:
    if not isinstance(value, str):
        errors.append(field_error("description", "Description must be a string"))
        return ""
    description = value.strip()
    if len(description) > 500:
        errors.append(field_error("description", "Description cannot exceed 500 characters"))
    return description


def _check_choice(errors: list[dict], value: object, name: str, choices: tuple) -> Optional[str]:
    if value not in choices:
        errors.append(
            field_error(name, f"{name.capitalize()} must be {', '.join(choices[:-1])}, or {choices[-1]}", value)
        )
        return None
    return value


def _check_tags(errors: list[dict], value: object) -> tuple:
    if not isinstance(value, list):
        errors.append(field_error("tags", "Tags must be an array"))
        return ()
    if len(value) > MAX_TAGS:
        errors.append(field_error("tags", "Cannot have more than 10 tags"))
        return ()
    if any(not isinstance(tag, str) or len(tag) > MAX_TAG_LENGTH for tag in value):
        errors.append(field_error("tags", "Each tag must be a string under 30 characters"))
        return ()
    return tuple(tag.strip() for tag in value if tag.strip())


def _check_due_date(errors: list[dict], value: object, *, future_only: bool) -> Optional[datetime]:
    due_date = parse_datetime(value)
    if due_date is None:
        errors.append(field_error("dueDate", "Due date must be a valid date", value))
        return None
    if future_only and due_date < utcnow() - DUE_DATE_TOLERANCE:
        errors.append(field_error("dueDate", "Due date must be in the future", value))
    return due_date


@dataclass(frozen=True)
class TaskCreate:
    title: str
    description: str = ""
    status: str = "todo"
    priority: str = "medium"
    due_date: Optional[datetime] = None
    tags: tuple = ()

    @classmethod
    def from_payload(cls, data: Mapping) -> "TaskCreate":
        errors: list[dict] = []
        title = data.get("title")
        if not (isinstance(title, str) and title.strip()):
            errors.append(field_error("title", "Task title is required"))
            title = ""
        else:
            title = _check_title(errors, title)

        values: dict = {}
        if data.get("description"):
            values["description"] = _check_description(errors, data["description"])
        if data.get("status"):
            values["status"] = _check_choice(errors, data["status"], "status", TASK_STATUSES)
        if data.get("priority"):
            values["priority"] = _check_choice(errors, data["priority"], "priority", TASK_PRIORITIES)
        if data.get("dueDate"):
            values["due_date"] = _check_due_date(errors, data["dueDate"], future_only=True)
        if data.get("tags"):
            values["tags"] = _check_tags(errors, data["tags"])
        _raise_if(errors)
        return cls(title=title, **values)


@dataclass(frozen=True)
class TaskUpdate:
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None
    clear_due_date: bool = False
    tags: Optional[tuple] = None

    @classmethod
    def from_payload(cls, data: Mapping) -> "TaskUpdate":
        errors: list[dict] = []
        values: dict = {}
        if data.get("title") is not None:
            values["title"] = _check_title(errors, data["title"])
        if data.get("description") is not None:
            values["description"] = _check_description(errors, data["description"])
        if data.get("status") is not None:
            values["status"] = _check_choice(errors, data["status"], "status", TASK_STATUSES)
        if data.get("priority") is not None:
            values["priority"] = _check_choice(errors, data["priority"], "priority", TASK_PRIORITIES)
        if "dueDate" in data:
            if data["dueDate"] in (None, ""):
                values["clear_due_date"] = True
            else:
                values["due_date"] = _check_due_date(errors, data["dueDate"], future_only=False)
        if data.get("tags") is not None:
            values["tags"] = _check_tags(errors, data["tags"])
        _raise_if(errors)
        if not values:
            raise BadRequest(NO_FIELDS_MESSAGE)
        return cls(**values)

    def apply(self, task) -> None:
        for name in ("title", "description", "status", "priority"):
            value = getattr(self, name)
            if value is not None:
                setattr(task, name, value)
        if self.clear_due_date:
            task.due_date = None
        elif self.due_date is not None:
            task.due_date = self.due_date
        if self.tags is not None:
            task.tags = list(self.tags)


@dataclass(frozen=True)
class ProfileUpdate:
    name: str

    @classmethod
    def from_payload(cls, data: Mapping) -> "ProfileUpdate":
        if data.get("name") is None:
            raise BadRequest(NO_FIELDS_MESSAGE)
        errors: list[dict] = []
        name = check_name(errors, data["name"])
        _raise_if(errors)
        return cls(name=name)


@dataclass(frozen=True)
class AdminUserUpdate:
    role: Optional[str] = None
    is_active: Optional[bool] = None

    @classmethod
    def from_payload(cls, data: Mapping) -> "AdminUserUpdate":
        errors: list[dict] = []
        values: dict = {}
        if data.get("role") is not None:
            role = data["role"]
            if role not in ROLES:
                errors.append(field_error("role", "Role must be either user or admin", role))
            values["role"] = role
        if data.get("isActive") is not None:
            is_active = data["isActive"]
            if not isinstance(is_active, bool):
                errors.append(field_error("isActive", "isActive must be a boolean", is_active))
            values["is_active"] = is_active
        _raise_if(errors)
        if not values:
            raise BadRequest(NO_FIELDS_MESSAGE)
        return cls(**values)

    def changes(self) -> dict:
        changed = {}
        if self.role is not None:
            changed["role"] = self.role
        if self.is_active is not None:
            changed["isActive"] = self.is_active
        return changed


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def collect(cls, args: Mapping, errors: list[dict]) -> "Pagination":
        page, limit = 1, 10
        if args.get("page") not in (None, ""):
            page = parse_int(args.get("page"))
            if page is None or page < 1:
                errors.append(field_error("page", "Page must be a positive integer", args.get("page")))
                page = 1
        if args.get("limit") not in (None, ""):
            limit = parse_int(args.get("limit"))
            if limit is None or not 1 <= limit <= 100:
                errors.append(field_error("limit", "Limit must be between 1 and 100", args.get("limit")))
                limit = 10
        return cls(page=page, limit=limit)

    @classmethod
    def from_args(cls, args: Mapping) -> "Pagination":
        errors: list[dict] = []
        pagination = cls.collect(args, errors)
        _raise_if(errors)
        return pagination

    def meta(self, total: int) -> dict:
        pages = -(-total // self.limit) if total else 0
        return {
            "total": total,
            "page": self.page,
            "limit": self.limit,
            "pages": pages,
            "hasNext": self.page < pages,
            "hasPrev": self.page > 1,
        }


@dataclass(frozen=True)
class TaskQuery:
    pagination: Pagination = field(default_factory=Pagination)
    status: Optional[str] = None
    priority: Optional[str] = None
    tag: Optional[str] = None
    archived: bool = False
    search: Optional[str] = None
    due_before: Optional[datetime] = None
    due_after: Optional[datetime] = None
    owner_id: Optional[int] = None
    sort_by: str = "created_at"
    ascending: bool = False

    @classmethod
    def from_args(cls, args: Mapping) -> "TaskQuery":
        errors: list[dict] = []
        values: dict = {"pagination": Pagination.collect(args, errors)}

        if args.get("status"):
            values["status"] = _check_choice(errors, args["status"], "status", TASK_STATUSES)
        if args.get("priority"):
            values["priority"] = _check_choice(errors, args["priority"], "priority", TASK_PRIORITIES)
        if args.get("tag"):
            values["tag"] = args["tag"].strip()
        if args.get("archived") is not None:
            archived = parse_bool(args.get("archived"))
            if archived is None:
                errors.append(field_error("archived", "archived must be true or false", args.get("archived")))
            else:
                values["archived"] = archived
        if args.get("search"):
            values["search"] = args["search"].strip()
        for arg, key in (("dueBefore", "due_before"), ("dueAfter", "due_after")):
            if args.get(arg):
                parsed = parse_datetime(args[arg])
                if parsed is None:
                    errors.append(field_error(arg, f"{arg} must be a valid date", args[arg]))
                values[key] = parsed
        if args.get("owner"):
            owner_id = parse_int(args["owner"])
            if owner_id is None:
                errors.append(field_error("owner", "Invalid owner format", args["owner"]))
            values["owner_id"] = owner_id
        if args.get("sortBy"):
            if args["sortBy"] not in SORTABLE_FIELDS:
                errors.append(
                    field_error("sortBy", f"sortBy must be one of {', '.join(SORTABLE_FIELDS)}", args["sortBy"])
                )
            else:
                values["sort_by"] = SORTABLE_FIELDS[args["sortBy"]]
        values["ascending"] = args.get("sortOrder") == "asc"

        _raise_if(errors)
        return cls(**values)


@dataclass(frozen=True)
class UserQuery:
    pagination: Pagination = field(default_factory=Pagination)
    role: Optional[str] = None
    is_active: Optional[bool] = None
    search: Optional[str] = None

    @classmethod
    def from_args(cls, args: Mapping) -> "UserQuery":
        errors: list[dict] = []
        values: dict = {"pagination": Pagination.collect(args, errors)}

        if args.get("role"):
            if args["role"] not in ROLES:
                errors.append(field_error("role", "Role must be either user or admin", args["role"]))
            values["role"] = args["role"]
        if args.get("isActive") is not None:
            is_active = parse_bool(args.get("isActive"))
            if is_active is None:
                errors.append(field_error("isActive", "isActive must be true or false"))
            values["is_active"] = is_active
        search = (args.get("search") or "").strip().lower()
        if search:
            values["search"] = search

        _raise_if(errors)
        return cls(**values)
