"""Task queries shared by the task and admin blueprints."""

from __future__ import annotations

from sqlalchemy import and_, case, exists, func, or_, select

from models import db, utcnow
from models.task import Task
from services.commands import TaskQuery


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _has_tag(tag: str):
    """Exact match against one element of the ``tags`` JSON array.

    Elements are unpacked by the database, so escaped characters in the
    stored JSON compare by their decoded value.
    """

    if db.session.get_bind().dialect.name == "postgresql":
        elements = func.json_array_elements_text(Task.tags).table_valued("value")
    else:
        elements = func.json_each(Task.tags).table_valued("value")
    return exists(select(1).select_from(elements).where(elements.c.value == tag))


def build_task_query(query: TaskQuery, owner_id: int, is_admin: bool):
    """Return a select of the tasks visible to the caller, filtered and sorted.

    Non-admins are always pinned to their own tasks; ``owner`` in the query
    string only takes effect for admins.
    """

    stmt = select(Task)
    if not is_admin:
        stmt = stmt.where(Task.owner_id == owner_id)
    elif query.owner_id is not None:
        stmt = stmt.where(Task.owner_id == query.owner_id)

    stmt = stmt.where(Task.is_archived == query.archived)
    if query.status:
        stmt = stmt.where(Task.status == query.status)
    if query.priority:
        stmt = stmt.where(Task.priority == query.priority)
    if query.tag:
        stmt = stmt.where(_has_tag(query.tag))
    if query.search:
        pattern = f"%{_escape_like(query.search.lower())}%"
        stmt = stmt.where(
            or_(
                func.lower(Task.title).like(pattern, escape="\\"),
                func.lower(Task.description).like(pattern, escape="\\"),
            )
        )
    if query.due_before is not None:
        stmt = stmt.where(Task.due_date <= query.due_before)
    if query.due_after is not None:
        stmt = stmt.where(Task.due_date >= query.due_after)

    column = getattr(Task, query.sort_by)
    ordering = column.asc() if query.ascending else column.desc()
    return stmt.order_by(ordering, Task.id.desc())


def list_tasks(query: TaskQuery, owner_id: int, is_admin: bool) -> tuple[list[Task], int]:
    stmt = build_task_query(query, owner_id, is_admin)
    total = db.session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()
    page = query.pagination
    tasks = db.session.execute(stmt.offset(page.offset).limit(page.limit)).scalars().all()
    return list(tasks), total


def _count_if(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def task_stats(owner_id: int | None = None) -> dict:
    """Counts over non-archived tasks, for one owner or for everyone."""

    now = utcnow()
    stmt = select(
        func.count(Task.id),
        _count_if(Task.status == "todo"),
        _count_if(Task.status == "in-progress"),
        _count_if(Task.status == "completed"),
        _count_if(Task.priority == "high"),
        _count_if(
            and_(
                Task.due_date.isnot(None),
                Task.due_date < now,
                Task.status != "completed",
            )
        ),
    ).where(Task.is_archived == False)  # noqa: E712
    if owner_id is not None:
        stmt = stmt.where(Task.owner_id == owner_id)

    total, todo, in_progress, completed, high, overdue = db.session.execute(stmt).one()
    return {
        "total": total,
        "todo": todo,
        "inProgress": in_progress,
        "completed": completed,
        "highPriority": high,
        "overdue": overdue,
    }


def status_breakdown(owner_id: int) -> list[dict]:
    rows = db.session.execute(
        select(Task.status, func.count(Task.id))
        .where(Task.owner_id == owner_id)
        .group_by(Task.status)
        .order_by(Task.status)
    ).all()
    return [{"status": status, "count": count} for status, count in rows]
