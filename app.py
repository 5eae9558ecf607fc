"""Application factory."""

import json
import os
import uuid

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from werkzeug.exceptions import HTTPException, NotFound

from config import Config
from models import db
from routes.admin import admin_bp
from routes.auth import auth_bp
from routes.tasks import tasks_bp
from routes.users import users_bp
from utils.auth import optional_auth
from utils.errors import StoreUnavailable, ValidationFailed
from utils.logging_config import configure_logging
from utils.retry import wait_for_database

migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}


def _engine_options(config) -> dict:
    """Bound every store call by ``DB_TIMEOUT_SECONDS``."""

    options = dict(config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    timeout = float(config.get("DB_TIMEOUT_SECONDS", 5))
    uri = str(config.get("SQLALCHEMY_DATABASE_URI", ""))
    connect_args = dict(options.get("connect_args") or {})

    if uri.startswith("sqlite"):
        connect_args.setdefault("timeout", timeout)
    else:
        options.setdefault("pool_pre_ping", True)
        options.setdefault("pool_timeout", timeout)
        if uri.startswith("postgresql"):
            connect_args.setdefault("connect_timeout", max(int(timeout), 1))
            connect_args.setdefault("options", f"-c statement_timeout={int(timeout * 1000)}")

    options["connect_args"] = connect_args
    return options


def create_app(config_class: type[Config] = Config) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(app.config)
    configure_logging(app)

    # Core subsystems
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # CORS
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Rate limiting
    storage_uri = app.config.get("RATELIMIT_STORAGE_URI", "memory://")
    headers_enabled = app.config.get("RATELIMIT_HEADERS_ENABLED", True)
    key_prefix = app.config.get("RATELIMIT_KEY_PREFIX") or str(uuid.uuid4())

    global limiter
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[lambda: app.config.get("RATE_LIMIT", "100 per 15 minutes")],
        storage_uri=storage_uri,
        headers_enabled=headers_enabled,
        key_prefix=key_prefix,
    )
    limiter.limit(lambda: app.config.get("AUTH_RATE_LIMIT", "20 per 15 minutes"))(auth_bp)
    limiter.init_app(app)
    app.config["RATELIMIT_KEY_PREFIX"] = key_prefix

    # Blueprints
    prefix = app.config.get("API_PREFIX", "/api/v1").rstrip("/")
    app.register_blueprint(auth_bp, url_prefix=f"{prefix}/auth")
    app.register_blueprint(tasks_bp, url_prefix=f"{prefix}/tasks")
    app.register_blueprint(users_bp, url_prefix=f"{prefix}/users")
    app.register_blueprint(admin_bp, url_prefix=f"{prefix}/admin")

    # Health
    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify(
            {
                "success": True,
                "status": "healthy",
                "environment": app.config.get("APP_ENV"),
                "version": app.config.get("API_VERSION"),
            }
        )

    @app.route(prefix or "/", methods=["GET"])
    @optional_auth
    def api_index(identity):
        payload = {
            "success": True,
            "message": "TaskFlow API",
            "version": app.config.get("API_VERSION"),
        }
        if identity is not None:
            payload["message"] = f"Welcome back, {identity.name}."
            payload["user"] = {"id": identity.id, "name": identity.name, "role": identity.role}
        return jsonify(payload)

    @app.after_request
    def _add_security_headers(response):
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    # Errors
    _register_error_handlers(app)

    return app


def _error_response(error: HTTPException, request_id: str):
    response = error.get_response()
    payload = {
        "success": False,
        "message": error.description,
        "request_id": request_id,
    }
    if isinstance(error, ValidationFailed):
        payload["errors"] = error.errors
    response.data = json.dumps(payload)
    response.content_type = "application/json"
    response.headers.setdefault("X-Request-ID", request_id)
    return response


def _register_error_handlers(app: Flask) -> None:
    """Register JSON error handlers with request IDs."""

    @app.before_request
    def _assign_request_id():  # pragma: no cover
        g.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    @app.after_request
    def _add_request_id_header(response):  # pragma: no cover
        request_id = g.get("request_id")
        if request_id:
            response.headers.setdefault("X-Request-ID", request_id)
        return response

    @app.errorhandler(HTTPException)
    def _handle_http_exception(error: HTTPException):
        request_id = g.get("request_id") or str(uuid.uuid4())
        if isinstance(error, NotFound) and error.description == NotFound.description:
            error = NotFound(f"Route {request.path} not found on this server.")
        level = app.logger.warning if error.code and error.code >= 500 else app.logger.info
        level("%s %s -> %s %s", request.method, request.path, error.code, error.description)
        return _error_response(error, request_id)

    @app.errorhandler(OperationalError)
    @app.errorhandler(PoolTimeoutError)
    def _handle_store_unavailable(error: Exception):
        request_id = g.get("request_id") or str(uuid.uuid4())
        db.session.rollback()
        app.logger.error("Database unavailable: %s", error.__class__.__name__, exc_info=error)
        return _error_response(StoreUnavailable(), request_id)

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):  # pragma: no cover
        request_id = g.get("request_id") or str(uuid.uuid4())
        db.session.rollback()
        app.logger.exception("Unhandled application error", exc_info=error)
        payload = {
            "success": False,
            "message": "Something went wrong. Please try again later.",
            "request_id": request_id,
        }
        if app.config.get("EXPOSE_ERROR_DETAILS"):
            payload["error"] = repr(error)
        response = jsonify(payload)
        response.status_code = 500
        response.headers.setdefault("X-Request-ID", request_id)
        return response


if __name__ == "__main__":
    application = create_app()
    with application.app_context():
        wait_for_database()
    application.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
