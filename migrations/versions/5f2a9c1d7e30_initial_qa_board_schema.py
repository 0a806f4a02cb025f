"""initial_qa_board_schema

Create projects, team members, checklist items, conflicts and the
configurable task board tables.

Revision ID: 5f2a9c1d7e30
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5f2a9c1d7e30"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)]
    if with_updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return cols


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("client", sa.String(length=200), nullable=True),
            sa.Column("site_type", sa.String(length=30), nullable=False, server_default="landing"),
            sa.Column("technology", sa.String(length=30), nullable=False, server_default="wordpress"),
            sa.Column("applicable_areas", sa.JSON(), nullable=True),
            sa.Column("target_date", sa.Date(), nullable=True),
            sa.Column("custom_phase_names", sa.JSON(), nullable=True),
            sa.Column("hidden_phases", sa.JSON(), nullable=True),
            sa.Column("phase_order", sa.JSON(), nullable=True),
            sa.Column("completion_percentage", sa.Float(), nullable=True),
            sa.Column("critical_pending", sa.Integer(), nullable=True),
            sa.Column("risk_level", sa.String(length=10), nullable=True),
            sa.Column("has_conflicts", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )

    if "team_members" not in existing_tables:
        op.create_table(
            "team_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=50), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            *_timestamps(with_updated=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_team_members_project_id", "team_members", ["project_id"])

    if "checklist_items" not in existing_tables:
        op.create_table(
            "checklist_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("phase", sa.String(length=50), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("weight", sa.String(length=20), nullable=False, server_default="medium"),
            sa.Column("order", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("applicable_technologies", sa.JSON(), nullable=True),
            sa.Column("applicable_site_types", sa.JSON(), nullable=True),
            sa.Column("completed_by", sa.String(length=200), nullable=True),
            sa.Column("completed_by_role", sa.String(length=50), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_checklist_items_project_id", "checklist_items", ["project_id"])
        op.create_index("ix_checklist_items_phase", "checklist_items", ["phase"])
        op.create_index("ix_checklist_items_status", "checklist_items", ["status"])
        op.create_index("ix_checklist_items_project_phase", "checklist_items", ["project_id", "phase"])

    if "conflicts" not in existing_tables:
        op.create_table(
            "conflicts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("checklist_item_id", sa.Integer(), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
            sa.Column("raised_by", sa.String(length=200), nullable=True),
            sa.Column("raised_by_role", sa.String(length=50), nullable=True),
            sa.Column("resolution", sa.Text(), nullable=True),
            sa.Column("resolved_by", sa.String(length=200), nullable=True),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(with_updated=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["checklist_item_id"], ["checklist_items.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_conflicts_project_id", "conflicts", ["project_id"])
        op.create_index("ix_conflicts_checklist_item_id", "conflicts", ["checklist_item_id"])
        op.create_index("ix_conflicts_status", "conflicts", ["status"])

    if "task_configurations" not in existing_tables:
        op.create_table(
            "task_configurations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("module_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("custom_statuses", sa.JSON(), nullable=False),
            sa.Column("custom_priorities", sa.JSON(), nullable=False),
            sa.Column("custom_fields", sa.JSON(), nullable=False),
            sa.Column("permissions", sa.JSON(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_task_configurations_project_id", "task_configurations", ["project_id"], unique=True)

    if "tasks" not in existing_tables:
        op.create_table(
            "tasks",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=50), nullable=False),
            sa.Column("priority", sa.String(length=50), nullable=False),
            sa.Column("assigned_to", sa.String(length=200), nullable=True),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("order", sa.Integer(), nullable=True),
            sa.Column("custom_fields", sa.JSON(), nullable=False),
            sa.Column("created_by", sa.String(length=200), nullable=True),
            sa.Column("completed_by", sa.String(length=200), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
        op.create_index("ix_tasks_status", "tasks", ["status"])
        op.create_index("ix_tasks_project_status", "tasks", ["project_id", "status"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in ("tasks", "task_configurations", "conflicts", "checklist_items", "team_members", "projects"):
        if table in existing_tables:
            op.drop_table(table)
