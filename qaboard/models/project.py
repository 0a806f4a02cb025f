"""Project domain models: the delivery project and its team members."""

from datetime import datetime, timezone

from qaboard.models import db


SITE_TYPES = {"landing", "ecommerce", "corporate", "blog", "forms", "webapp"}
TECHNOLOGIES = {"wordpress", "webflow", "custom", "shopify"}
RISK_LEVELS = {"low", "medium", "high"}


class Project(db.Model):
    """A web-delivery project whose QA checklist and task board are tracked here."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    client = db.Column(db.String(200), default="")
    site_type = db.Column(
        db.String(30), nullable=False, default="landing",
        comment="landing | ecommerce | corporate | blog | forms | webapp",
    )
    technology = db.Column(
        db.String(30), nullable=False, default="wordpress",
        comment="wordpress | webflow | custom | shopify",
    )
    applicable_areas = db.Column(
        db.JSON, default=list,
        comment="Selectable areas taking part in the project; empty = all",
    )
    target_date = db.Column(db.Date, nullable=True)

    # ── Per-project phase overrides (catalogue phases are never deleted) ──
    custom_phase_names = db.Column(db.JSON, default=dict, comment="phase key -> display name")
    hidden_phases = db.Column(db.JSON, default=list)
    phase_order = db.Column(db.JSON, default=list, comment="Custom phase ordering; empty = catalogue order")

    # ── Denormalised risk metrics, refreshed from the risk engine ──
    completion_percentage = db.Column(db.Float, default=0.0)
    critical_pending = db.Column(db.Integer, default=0)
    risk_level = db.Column(db.String(10), default="low")
    has_conflicts = db.Column(db.Boolean, default=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    checklist_items = db.relationship(
        "ChecklistItem", backref="project", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    conflicts = db.relationship(
        "Conflict", backref="project", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    team_members = db.relationship(
        "TeamMember", backref="project", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        """Serialize project fields for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "client": self.client,
            "site_type": self.site_type,
            "technology": self.technology,
            "applicable_areas": self.applicable_areas or [],
            "target_date": self.target_date.isoformat() if self.target_date else None,
            "custom_phase_names": self.custom_phase_names or {},
            "hidden_phases": self.hidden_phases or [],
            "phase_order": self.phase_order or [],
            "completion_percentage": self.completion_percentage,
            "critical_pending": self.critical_pending,
            "risk_level": self.risk_level,
            "has_conflicts": self.has_conflicts,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.name} ({self.site_type}/{self.technology})>"


class TeamMember(db.Model):
    """Person assigned to a project with a checklist role."""

    __tablename__ = "team_members"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    email = db.Column(db.String(200), nullable=False)
    full_name = db.Column(db.String(200), default="")
    role = db.Column(db.String(50), nullable=False, comment="Key into the role capability table")
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
