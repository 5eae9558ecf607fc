"""Tests for task CRUD, ownership, filtering, and stats."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import API, auth_headers, create_user, login
from models import db, utcnow
from models.task import Task


def _create_task(client, token, **fields):
    payload = {"title": "Build REST API"}
    payload.update(fields)
    response = client.post(f"{API}/tasks", json=payload, headers=auth_headers(token))
    assert response.status_code == 201, response.get_json()
    return response.get_json()["task"]


@pytest.fixture()
def other_token(app, client):
    create_user(app, "other@example.com", name="Other Person")
    return login(client, "other@example.com")["token"]


def test_create_task_with_defaults(client, user_token):
    task = _create_task(client, user_token, tags=["backend", "api"])

    assert task["status"] == "todo"
    assert task["priority"] == "medium"
    assert task["tags"] == ["backend", "api"]
    assert task["isArchived"] is False
    assert task["isOverdue"] is False
    assert task["owner"]["email"] == "member@example.com"


def test_create_task_collects_all_errors(client, user_token):
    response = client.post(
        f"{API}/tasks",
        json={
            "title": "ab",
            "status": "doing",
            "priority": "urgent",
            "dueDate": "2001-01-01T00:00:00Z",
            "tags": ["x"] * 11,
        },
        headers=auth_headers(user_token),
    )

    assert response.status_code == 400
    fields = {error["field"] for error in response.get_json()["errors"]}
    assert fields == {"title", "status", "priority", "dueDate", "tags"}


def test_tasks_require_authentication(client):
    assert client.get(f"{API}/tasks").status_code == 401


def test_owner_can_read_update_and_delete(client, user_token):
    task = _create_task(client, user_token)
    headers = auth_headers(user_token)

    fetched = client.get(f"{API}/tasks/{task['id']}", headers=headers)
    assert fetched.status_code == 200

    updated = client.put(
        f"{API}/tasks/{task['id']}",
        json={"status": "completed", "priority": "high", "owner_id": 999},
        headers=headers,
    )
    assert updated.status_code == 200
    body = updated.get_json()["task"]
    assert body["status"] == "completed"
    assert body["priority"] == "high"
    assert body["owner"]["email"] == "member@example.com"

    deleted = client.delete(f"{API}/tasks/{task['id']}", headers=headers)
    assert deleted.status_code == 200
    assert client.get(f"{API}/tasks/{task['id']}", headers=headers).status_code == 404


def test_update_with_no_known_fields_is_rejected(client, user_token):
    task = _create_task(client, user_token)

    response = client.put(
        f"{API}/tasks/{task['id']}",
        json={"owner_id": 5},
        headers=auth_headers(user_token),
    )

    assert response.status_code == 400
    assert response.get_json()["message"] == "No valid fields to update."


def test_update_can_clear_due_date(client, user_token):
    due = (utcnow() + timedelta(days=3)).isoformat()
    task = _create_task(client, user_token, dueDate=due)
    assert task["dueDate"] is not None

    response = client.put(
        f"{API}/tasks/{task['id']}",
        json={"dueDate": None},
        headers=auth_headers(user_token),
    )

    assert response.get_json()["task"]["dueDate"] is None


def test_foreign_task_is_forbidden_but_admin_allowed(client, user_token, other_token, admin_token):
    task = _create_task(client, user_token)

    for method in ("get", "delete"):
        response = getattr(client, method)(f"{API}/tasks/{task['id']}", headers=auth_headers(other_token))
        assert response.status_code == 403
    archive = client.patch(f"{API}/tasks/{task['id']}/archive", headers=auth_headers(other_token))
    assert archive.status_code == 403

    admin_view = client.get(f"{API}/tasks/{task['id']}", headers=auth_headers(admin_token))
    assert admin_view.status_code == 200


def test_missing_task_is_not_found(client, user_token):
    response = client.get(f"{API}/tasks/4242", headers=auth_headers(user_token))

    assert response.status_code == 404
    assert response.get_json()["message"] == "Task not found."


def test_listing_is_scoped_filtered_and_paginated(client, user_token, other_token):
    for index in range(12):
        _create_task(
            client,
            user_token,
            title=f"Mine number {index}",
            priority="high" if index % 3 == 0 else "low",
            tags=["even"] if index % 2 == 0 else ["odd"],
        )
    _create_task(client, other_token, title="Somebody else")
    headers = auth_headers(user_token)

    first_page = client.get(f"{API}/tasks?limit=5", headers=headers).get_json()
    assert len(first_page["tasks"]) == 5
    pagination = first_page["meta"]["pagination"]
    assert pagination == {
        "total": 12,
        "page": 1,
        "limit": 5,
        "pages": 3,
        "hasNext": True,
        "hasPrev": False,
    }

    last_page = client.get(f"{API}/tasks?limit=5&page=3", headers=headers).get_json()
    assert len(last_page["tasks"]) == 2

    high = client.get(f"{API}/tasks?priority=high&limit=100", headers=headers).get_json()
    assert high["meta"]["pagination"]["total"] == 4

    even = client.get(f"{API}/tasks?tag=even&limit=100", headers=headers).get_json()
    assert even["meta"]["pagination"]["total"] == 6

    search = client.get(
        f"{API}/tasks", query_string={"search": "NUMBER 1"}, headers=headers
    ).get_json()
    titles = {task["title"] for task in search["tasks"]}
    assert titles == {"Mine number 1", "Mine number 10", "Mine number 11"}

    ascending = client.get(f"{API}/tasks?sortBy=title&sortOrder=asc&limit=1", headers=headers).get_json()
    assert ascending["tasks"][0]["title"] == "Mine number 0"


@pytest.mark.parametrize("tag", ["café", 'say "hi"', "50%_off"])
def test_tag_filter_matches_whole_elements(client, user_token, tag):
    _create_task(client, user_token, title="Tagged task", tags=[tag, "other"])
    _create_task(client, user_token, title="Near miss", tags=["cafe", "say hi", "50% off"])
    headers = auth_headers(user_token)

    response = client.get(f"{API}/tasks", query_string={"tag": tag}, headers=headers)

    assert response.status_code == 200
    assert [task["title"] for task in response.get_json()["tasks"]] == ["Tagged task"]


def test_tag_filter_ignores_partial_matches(client, user_token):
    _create_task(client, user_token, tags=["backend"])
    headers = auth_headers(user_token)

    response = client.get(f"{API}/tasks", query_string={"tag": "back"}, headers=headers)

    assert response.get_json()["tasks"] == []


def test_owner_filter_only_applies_to_admins(app, client, user_token, other_token, admin_token):
    _create_task(client, user_token, title="Member task")
    _create_task(client, other_token, title="Other task")
    with app.app_context():
        other_id = db.session.execute(
            db.select(Task.owner_id).where(Task.title == "Other task")
        ).scalar_one()

    as_member = client.get(f"{API}/tasks?owner={other_id}", headers=auth_headers(user_token)).get_json()
    assert [task["title"] for task in as_member["tasks"]] == ["Member task"]

    as_admin = client.get(f"{API}/tasks?owner={other_id}", headers=auth_headers(admin_token)).get_json()
    assert [task["title"] for task in as_admin["tasks"]] == ["Other task"]


@pytest.mark.parametrize("query", ["page=0", "limit=101", "status=bogus", "sortBy=owner", "dueBefore=someday"])
def test_invalid_list_queries_are_rejected(client, user_token, query):
    response = client.get(f"{API}/tasks?{query}", headers=auth_headers(user_token))

    assert response.status_code == 400
    assert response.get_json()["errors"]


def test_archive_toggles_and_hides_from_default_list(client, user_token):
    task = _create_task(client, user_token)
    headers = auth_headers(user_token)

    archived = client.patch(f"{API}/tasks/{task['id']}/archive", headers=headers)
    assert archived.get_json()["message"] == "Task archived successfully."
    assert client.get(f"{API}/tasks", headers=headers).get_json()["tasks"] == []
    assert len(client.get(f"{API}/tasks?archived=true", headers=headers).get_json()["tasks"]) == 1

    restored = client.patch(f"{API}/tasks/{task['id']}/archive", headers=headers)
    assert restored.get_json()["message"] == "Task unarchived successfully."


def test_stats_count_statuses_and_overdue(app, client, user_token):
    _create_task(client, user_token, title="Todo high", priority="high")
    _create_task(client, user_token, title="Working", status="in-progress")
    done = _create_task(client, user_token, title="Done", status="completed")
    late = _create_task(client, user_token, title="Late one")
    with app.app_context():
        db.session.get(Task, late["id"]).due_date = utcnow() - timedelta(days=2)
        db.session.get(Task, done["id"]).due_date = utcnow() - timedelta(days=2)
        db.session.commit()

    stats = client.get(f"{API}/tasks/stats", headers=auth_headers(user_token)).get_json()["stats"]

    assert stats == {
        "total": 4,
        "todo": 2,
        "inProgress": 1,
        "completed": 1,
        "highPriority": 1,
        "overdue": 1,
    }
