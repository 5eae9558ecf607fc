"""Task model."""

from datetime import datetime
from typing import Optional

from . import db, utcnow


TASK_STATUSES = ("todo", "in-progress", "completed")
TASK_PRIORITIES = ("low", "medium", "high")
MAX_TAGS = 10
MAX_TAG_LENGTH = 30


class Task(db.Model):
    """Represents a task owned by a single user."""

    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("ix_tasks_owner_status", "owner_id", "status"),
        db.Index("ix_tasks_owner_priority", "owner_id", "priority"),
        db.Index("ix_tasks_owner_created_at", "owner_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False, default="")
    status = db.Column(db.String(16), nullable=False, default="todo")
    priority = db.Column(db.String(16), nullable=False, default="medium")
    due_date = db.Column(db.DateTime, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    is_archived = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = db.relationship("User", back_populates="tasks")

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Return True when the task is past due and not completed."""

        if self.due_date is None or self.status == "completed":
            return False
        return self.due_date < (now or utcnow())

    def to_dict(self) -> dict:
        """Serialize the task along with a short owner summary."""

        owner = self.owner
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "tags": list(self.tags or []),
            "isArchived": self.is_archived,
            "isOverdue": self.is_overdue(),
            "owner": {
                "id": owner.id,
                "name": owner.name,
                "email": owner.email,
                "avatarInitials": owner.avatar_initials,
            }
            if owner is not None
            else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
