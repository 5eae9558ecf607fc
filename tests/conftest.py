"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.user import User  # noqa: E402

API = "/api/v1"
DEFAULT_PASSWORD = "Secure@123"


class _BaseTestConfig(Config):
    TESTING = True
    APP_ENV = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    JWT_SECRET_KEY = SECRET_KEY
    CORS_ORIGINS = "*"
    RATE_LIMIT = "1000 per minute"
    AUTH_RATE_LIMIT = "1000 per minute"
    LOG_DIR = None
    EXPOSE_ERROR_DETAILS = False


@pytest.fixture()
def app() -> Flask:
    """Create a Flask application instance for tests."""

    application = create_app(_BaseTestConfig)

    with application.app_context():
        db.create_all()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Return a test client for the Flask app."""

    return app.test_client()


def create_user(
    app: Flask,
    email: str,
    password: str = DEFAULT_PASSWORD,
    *,
    name: str = "Test User",
    role: str = "user",
    is_active: bool = True,
) -> int:
    """Persist a user directly and return its id."""

    with app.app_context():
        user = User(name=name, email=email, role=role, is_active=is_active)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


def login(client: FlaskClient, email: str, password: str = DEFAULT_PASSWORD) -> dict:
    response = client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def user_token(app: Flask, client: FlaskClient) -> str:
    create_user(app, "member@example.com", name="Member One")
    return login(client, "member@example.com")["token"]


@pytest.fixture()
def admin_token(app: Flask, client: FlaskClient) -> str:
    create_user(app, "admin@example.com", name="Admin User", role="admin")
    return login(client, "admin@example.com")["token"]
