"""workflow_windows

Creates the workflow window scheduler tables:
  - windows          — (phase, track, sub_stage) intervals
  - release_records  — one grade-release latch per track
  - scheduled_jobs   — background job registry and run history

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-09-14 10:02:31.118406
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '7c1e4a9b2d30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Windows ───────────────────────────────────────────────────────────
    if "windows" not in existing:
        op.create_table(
            "windows",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("phase", sa.String(length=20), nullable=False,
                      comment="proposal | application | submission | assessment | grade_release"),
            sa.Column("track", sa.String(length=20), nullable=False,
                      comment="IDP | UROP | CAPSTONE"),
            sa.Column("sub_stage", sa.String(length=20), nullable=True,
                      comment="CLA-1 | CLA-2 | CLA-3 | External; submission/assessment only"),
            sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_by", sa.String(length=150), nullable=False,
                      server_default="system"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("materialized_status", sa.String(length=20), nullable=True,
                      comment="Last status written by reconciler"),
            sa.Column("status_synced_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("end_at > start_at", name="ck_windows_end_after_start"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_windows_identity", "windows", ["phase", "track", "sub_stage"])
        op.create_index("ix_windows_interval", "windows", ["start_at", "end_at"])
        op.create_index("ix_windows_track", "windows", ["track"])

    # ── Release records ───────────────────────────────────────────────────
    if "release_records" not in existing:
        op.create_table(
            "release_records",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("track", sa.String(length=20), nullable=False),
            sa.Column("released_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("released_by", sa.String(length=150), nullable=False,
                      server_default="system"),
            sa.Column("window_id", sa.Integer(), nullable=True,
                      comment="grade_release window that was active at release time"),
            sa.ForeignKeyConstraint(["window_id"], ["windows.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("track", name="uq_release_records_track"),
        )

    # ── Scheduled jobs ────────────────────────────────────────────────────
    if "scheduled_jobs" not in existing:
        op.create_table(
            "scheduled_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("schedule_type", sa.String(length=30), nullable=True,
                      comment="interval, once"),
            sa.Column("schedule_config", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True,
                      comment="active, paused, completed, failed"),
            sa.Column("is_enabled", sa.Boolean(), nullable=True),
            sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_run_status", sa.String(length=20), nullable=True),
            sa.Column("last_run_duration_ms", sa.Integer(), nullable=True),
            sa.Column("last_run_result", sa.JSON(), nullable=True),
            sa.Column("run_count", sa.Integer(), nullable=True),
            sa.Column("error_count", sa.Integer(), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_name"),
        )


def downgrade():
    op.drop_table("scheduled_jobs")
    op.drop_table("release_records")
    op.drop_index("ix_windows_track", table_name="windows")
    op.drop_index("ix_windows_interval", table_name="windows")
    op.drop_index("ix_windows_identity", table_name="windows")
    op.drop_table("windows")
