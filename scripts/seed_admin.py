"""Seed an administrator user."""

import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app import create_app  # noqa: E402
from models import db  # noqa: E402
from models.user import User  # noqa: E402
from utils.retry import wait_for_database  # noqa: E402

ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin User")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "AdminPass123")


def main() -> None:
    app = create_app()
    with app.app_context():
        wait_for_database()
        admin = User.query.filter_by(email=ADMIN_EMAIL.lower()).first()
        if admin is None:
            admin = User(name=ADMIN_NAME, email=ADMIN_EMAIL, role="admin", is_active=True)
            admin.set_password(ADMIN_PASSWORD)
            db.session.add(admin)
            action = "created"
        else:
            admin.role = "admin"
            admin.is_active = True
            admin.set_password(ADMIN_PASSWORD)
            admin.clear_refresh_token()
            action = "updated"
        db.session.commit()
        print(f"Admin user {action}: {admin.email}")


if __name__ == "__main__":
    main()
