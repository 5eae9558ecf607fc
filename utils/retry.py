"""Retry policy for transient database errors.

Reads and connectivity checks are retried with exponential backoff: three
attempts, starting at 0.2 s and doubling. The session is rolled back between
attempts so the next one starts on a fresh connection. Writes are not wrapped;
a failed write surfaces as a 503 and the client decides whether to retry.
"""

from __future__ import annotations

import time
from functools import wraps

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError

from models import db

RETRYABLE_ERRORS = (OperationalError, PoolTimeoutError)


def is_retryable_db_error(error: BaseException) -> bool:
    if isinstance(error, RETRYABLE_ERRORS):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


def retry_on_db_error(max_attempts: int = 3, delay_seconds: float = 0.2, backoff_factor: float = 2.0):
    """Retry the wrapped callable on transient database errors."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            delay = delay_seconds
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except (DBAPIError, PoolTimeoutError) as error:
                    if not is_retryable_db_error(error) or attempt == max_attempts:
                        raise
                    db.session.rollback()
                    current_app.logger.warning(
                        "Database call %s failed (attempt %d/%d), retrying in %.1fs: %s",
                        func.__name__,
                        attempt,
                        max_attempts,
                        delay,
                        error.__class__.__name__,
                    )
                    time.sleep(delay)
                    delay *= backoff_factor

        return wrapper

    return decorator


@retry_on_db_error(max_attempts=5, delay_seconds=0.5)
def wait_for_database() -> None:
    """Open a connection and run a trivial query; used at startup and by scripts."""

    db.session.execute(text("SELECT 1"))
    db.session.rollback()
