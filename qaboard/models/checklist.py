"""
QA Board — checklist domain models.

Models:
    - ChecklistItem: per-project instance of a catalogue item
    - Conflict: open disagreement on a checklist item, raised to the web leader

Architecture chain: Project → ChecklistItem → Conflict
"""

from datetime import datetime, timezone

from qaboard.models import db


# ── Constants ────────────────────────────────────────────────────────────────

ITEM_STATUSES = {"pending", "in_progress", "completed", "conflict"}
WEIGHT_LEVELS = ("low", "medium", "high", "critical")
CONFLICT_STATUSES = {"open", "resolved"}


class ChecklistItem(db.Model):
    """A QA checklist item belonging to a project phase."""

    __tablename__ = "checklist_items"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    phase = db.Column(db.String(50), nullable=False, index=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    weight = db.Column(db.String(20), nullable=False, default="medium", comment="low | medium | high | critical")
    order = db.Column(db.Integer, default=0)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    # Applicability tags retained from the catalogue template
    applicable_technologies = db.Column(db.JSON, default=list)
    applicable_site_types = db.Column(db.JSON, default=list)

    # Completion metadata
    completed_by = db.Column(db.String(200), nullable=True)
    completed_by_role = db.Column(db.String(50), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("ix_checklist_items_project_phase", "project_id", "phase"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phase": self.phase,
            "title": self.title,
            "description": self.description,
            "weight": self.weight,
            "order": self.order,
            "status": self.status,
            "applicable_technologies": self.applicable_technologies or [],
            "applicable_site_types": self.applicable_site_types or [],
            "completed_by": self.completed_by,
            "completed_by_role": self.completed_by_role,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ChecklistItem {self.id}: [{self.phase}] {self.title[:40]} ({self.status})>"


class Conflict(db.Model):
    """An unresolved disagreement on a checklist item."""

    __tablename__ = "conflicts"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    checklist_item_id = db.Column(
        db.Integer, db.ForeignKey("checklist_items.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default="open", index=True)
    raised_by = db.Column(db.String(200), default="")
    raised_by_role = db.Column(db.String(50), default="")
    resolution = db.Column(db.Text, nullable=True)
    resolved_by = db.Column(db.String(200), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    checklist_item = db.relationship("ChecklistItem", foreign_keys=[checklist_item_id])

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "checklist_item_id": self.checklist_item_id,
            "description": self.description,
            "status": self.status,
            "raised_by": self.raised_by,
            "raised_by_role": self.raised_by_role,
            "resolution": self.resolution,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
