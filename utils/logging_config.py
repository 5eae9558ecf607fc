"""Logging setup for the Flask application logger."""

from __future__ import annotations

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, g, request

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5


def configure_logging(app: Flask) -> None:
    """Attach level, format and optional rotating files to ``app.logger``."""

    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    formatter = logging.Formatter(LOG_FORMAT)

    app.logger.setLevel(level)
    for handler in app.logger.handlers:
        handler.setFormatter(formatter)

    log_dir = app.config.get("LOG_DIR")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)

        error_handler = RotatingFileHandler(
            Path(log_dir) / "error.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)

        combined_handler = RotatingFileHandler(
            Path(log_dir) / "combined.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS
        )
        combined_handler.setFormatter(formatter)

        app.logger.addHandler(error_handler)
        app.logger.addHandler(combined_handler)

    @app.before_request
    def _start_timer():  # pragma: no cover
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response):
        started = g.get("request_started")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        app.logger.info(
            "%s %s %s %.1fms request_id=%s",
            request.method,
            request.path,
            response.status_code,
            elapsed_ms,
            g.get("request_id", "-"),
        )
        return response
