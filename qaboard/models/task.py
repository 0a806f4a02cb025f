"""
QA Board — task board models.

Models:
    - TaskConfiguration: per-project board definition (statuses, priorities,
      custom fields, role permission matrix)
    - Task: a card on the board; its status/priority keys come from the
      owning project's TaskConfiguration

The state machine is data-driven: there are no fixed status names. JSON
columns are always reassigned as whole values so that SQLAlchemy detects
the change.
"""

import copy
from datetime import datetime, timezone

from qaboard.models import db


FIELD_TYPES = ("text", "textarea", "number", "date", "checkbox", "select", "multiselect", "file")
TASK_PERMISSION_FLAGS = ("can_create", "can_edit", "can_delete", "can_change_status")

DEFAULT_TASK_CONFIG = {
    "module_enabled": True,
    "custom_statuses": [
        {"key": "todo", "label": "Por hacer", "color": "gray", "is_final": False, "order": 0},
        {"key": "in_progress", "label": "En progreso", "color": "blue", "is_final": False, "order": 1},
        {"key": "completed", "label": "Completado", "color": "green", "is_final": True, "order": 2},
    ],
    "custom_priorities": [
        {"key": "low", "label": "Baja", "color": "gray", "order": 0},
        {"key": "medium", "label": "Media", "color": "yellow", "order": 1},
        {"key": "high", "label": "Alta", "color": "red", "order": 2},
    ],
    "custom_fields": [],
    "permissions": {},
}


def default_task_config() -> dict:
    """Return a fresh deep copy of the first-use board configuration."""
    return copy.deepcopy(DEFAULT_TASK_CONFIG)


class TaskConfiguration(db.Model):
    """Customisable task board definition, one per project."""

    __tablename__ = "task_configurations"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    module_enabled = db.Column(db.Boolean, nullable=False, default=True)
    custom_statuses = db.Column(db.JSON, nullable=False, default=list)
    custom_priorities = db.Column(db.JSON, nullable=False, default=list)
    custom_fields = db.Column(db.JSON, nullable=False, default=list)
    permissions = db.Column(db.JSON, nullable=False, default=dict, comment="role -> {can_create, ...}")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def status(self, key):
        """Return the status definition for ``key`` or None."""
        return next((s for s in self.custom_statuses or [] if s.get("key") == key), None)

    def priority(self, key):
        """Return the priority definition for ``key`` or None."""
        return next((p for p in self.custom_priorities or [] if p.get("key") == key), None)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "module_enabled": self.module_enabled,
            "custom_statuses": self.custom_statuses or [],
            "custom_priorities": self.custom_priorities or [],
            "custom_fields": self.custom_fields or [],
            "permissions": self.permissions or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Task(db.Model):
    """A card on a project's task board."""

    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(50), nullable=False, index=True)
    priority = db.Column(db.String(50), nullable=False)
    assigned_to = db.Column(db.String(200), nullable=True, comment="Email of the single assignee")
    due_date = db.Column(db.Date, nullable=True)
    order = db.Column(db.Integer, default=0, comment="Position within its status column")
    custom_fields = db.Column(db.JSON, nullable=False, default=dict)

    created_by = db.Column(db.String(200), default="")
    completed_by = db.Column(db.String(200), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("ix_tasks_project_status", "project_id", "status"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "assigned_to": self.assigned_to,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "order": self.order,
            "custom_fields": self.custom_fields or {},
            "created_by": self.created_by,
            "completed_by": self.completed_by,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Task {self.id}: {self.title[:40]} ({self.status})>"
