"""Tests for admin user management and platform stats."""

from __future__ import annotations

from conftest import API, auth_headers, create_user, login
from models import db
from models.task import Task
from models.user import User


def _admin_id(app) -> int:
    with app.app_context():
        return User.query.filter_by(email="admin@example.com").one().id


def test_list_users_filters_and_paginates(app, client, admin_token):
    create_user(app, "zed@example.com", name="Zed Alpha")
    create_user(app, "yan@example.com", name="Yan Beta", is_active=False)
    headers = auth_headers(admin_token)

    everyone = client.get(f"{API}/admin/users", headers=headers).get_json()
    assert everyone["meta"]["pagination"]["total"] == 3
    assert all("refreshToken" not in user for user in everyone["users"])

    inactive = client.get(f"{API}/admin/users?isActive=false", headers=headers).get_json()
    assert [user["email"] for user in inactive["users"]] == ["yan@example.com"]

    admins = client.get(f"{API}/admin/users?role=admin", headers=headers).get_json()
    assert [user["email"] for user in admins["users"]] == ["admin@example.com"]

    search = client.get(f"{API}/admin/users?search=ALPHA", headers=headers).get_json()
    assert [user["email"] for user in search["users"]] == ["zed@example.com"]

    bad = client.get(f"{API}/admin/users?role=root&limit=0", headers=headers)
    assert bad.status_code == 400
    assert {error["field"] for error in bad.get_json()["errors"]} == {"role", "limit"}


def test_get_user_includes_task_breakdown(app, client, admin_token):
    user_id = create_user(app, "worker@example.com")
    with app.app_context():
        db.session.add_all(
            [
                Task(owner_id=user_id, title="One", status="todo"),
                Task(owner_id=user_id, title="Two", status="todo"),
                Task(owner_id=user_id, title="Three", status="completed"),
            ]
        )
        db.session.commit()

    response = client.get(f"{API}/admin/users/{user_id}", headers=auth_headers(admin_token))

    assert response.status_code == 200
    assert response.get_json()["taskStats"] == [
        {"status": "completed", "count": 1},
        {"status": "todo", "count": 2},
    ]
    assert client.get(f"{API}/admin/users/9999", headers=auth_headers(admin_token)).status_code == 404


def test_admin_updates_role_and_active_flag(app, client, admin_token):
    user_id = create_user(app, "promote@example.com")
    refresh_token = login(client, "promote@example.com")["refreshToken"]

    response = client.patch(
        f"{API}/admin/users/{user_id}",
        json={"role": "admin", "isActive": False, "email": "hijack@example.com"},
        headers=auth_headers(admin_token),
    )

    assert response.status_code == 200
    user = response.get_json()["user"]
    assert user["role"] == "admin"
    assert user["isActive"] is False
    assert user["email"] == "promote@example.com"

    refreshed = client.post(f"{API}/auth/refresh", json={"refreshToken": refresh_token})
    assert refreshed.status_code == 401


def test_admin_update_validation(app, client, admin_token):
    user_id = create_user(app, "target@example.com")
    headers = auth_headers(admin_token)

    invalid = client.patch(f"{API}/admin/users/{user_id}", json={"role": "owner"}, headers=headers)
    assert invalid.status_code == 400

    empty = client.patch(f"{API}/admin/users/{user_id}", json={"name": "X"}, headers=headers)
    assert empty.status_code == 400
    assert empty.get_json()["message"] == "No valid fields to update."


def test_admin_cannot_modify_or_delete_self(app, client, admin_token):
    admin_id = _admin_id(app)
    headers = auth_headers(admin_token)

    patch = client.patch(f"{API}/admin/users/{admin_id}", json={"role": "user"}, headers=headers)
    assert patch.status_code == 400

    delete = client.delete(f"{API}/admin/users/{admin_id}", headers=headers)
    assert delete.status_code == 400


def test_delete_user_cascades_to_tasks(app, client, admin_token):
    user_id = create_user(app, "leaving@example.com")
    with app.app_context():
        db.session.add_all([Task(owner_id=user_id, title=f"Task {n}") for n in range(3)])
        db.session.commit()

    response = client.delete(f"{API}/admin/users/{user_id}", headers=auth_headers(admin_token))

    assert response.status_code == 200
    assert response.get_json()["message"] == "User deleted successfully along with 3 tasks."
    with app.app_context():
        assert db.session.get(User, user_id) is None
        assert Task.query.filter_by(owner_id=user_id).count() == 0


def test_platform_stats(app, client, admin_token):
    user_id = create_user(app, "stats@example.com", is_active=False)
    with app.app_context():
        db.session.add(Task(owner_id=user_id, title="Counted", status="in-progress"))
        db.session.commit()

    data = client.get(f"{API}/admin/stats", headers=auth_headers(admin_token)).get_json()

    assert data["users"] == {"total": 2, "active": 1, "admins": 1, "users": 1}
    assert data["tasks"] == {"total": 1, "todo": 0, "inProgress": 1, "completed": 0}
    assert len(data["recentUsers"]) == 2
    assert data["recentTasks"][0]["title"] == "Counted"
