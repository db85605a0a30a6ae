"""Initial grant portal schema

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates all tables for the foundation grant portal workflow:
- organizations, users: applicant organizations and their portal users
- grant_cycle_configs: funding periods, with at most one active
- letters_of_interest, loi_status_history: LOIs and their transitions
- applications, status_history, communications: applications, their
  transitions and info-request messages
- votes, budget_assessments, review_notes: advisory reviewer input
- audit_logs: administrative actions
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.TIMESTAMP(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            )
        )
    return columns


def _history_columns() -> list[sa.Column]:
    return [
        sa.Column("previous_status", sa.String(32), nullable=True),
        sa.Column("new_status", sa.String(32), nullable=False),
        sa.Column("changed_by_id", sa.String(255), nullable=False),
        sa.Column("changed_by_name", sa.String(255), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    ]


def upgrade() -> None:
    """Create initial database schema."""

    # ==========================================================================
    # Organizations and users
    # ==========================================================================
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("legal_name", sa.String(255), nullable=False),
        sa.Column("ein", sa.String(20), nullable=True),
        sa.Column("mission_statement", sa.Text(), nullable=True),
        sa.Column("profile_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("external_id", sa.String(255), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=True,
        ),
        *_timestamps(updated=False),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])

    # ==========================================================================
    # Grant cycles
    # ==========================================================================
    op.create_table(
        "grant_cycle_configs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("cycle", sa.String(32), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("loi_open_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("loi_deadline", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("full_app_open_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("full_app_deadline", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("max_request_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("accepting_lois", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("accepting_applications", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("cycle", "year", name="uq_grant_cycle_configs_cycle_year"),
    )
    # At most one active cycle
    op.create_index(
        "uq_grant_cycle_configs_single_active",
        "grant_cycle_configs",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    # ==========================================================================
    # Letters of Interest
    # ==========================================================================
    op.create_table(
        "letters_of_interest",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "cycle_config_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("grant_cycle_configs.id"),
            nullable=False,
        ),
        sa.Column("status", sa.String(32), nullable=False, server_default="DRAFT"),
        sa.Column("project_title", sa.String(500), nullable=True),
        sa.Column("project_description", sa.Text(), nullable=True),
        sa.Column("project_goals", sa.Text(), nullable=True),
        sa.Column("focus_area", sa.String(100), nullable=True),
        sa.Column("expenditure_type", sa.String(100), nullable=True),
        sa.Column("total_project_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("grant_request_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("percent_of_project", sa.Numeric(5, 2), nullable=True),
        sa.Column("budget_outline", sa.Text(), nullable=True),
        sa.Column("primary_contact_name", sa.String(255), nullable=True),
        sa.Column("primary_contact_email", sa.String(320), nullable=True),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("submitted_by_id", sa.String(255), nullable=True),
        sa.Column("submitted_by_name", sa.String(255), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("reviewed_by_id", sa.String(255), nullable=True),
        sa.Column("reviewed_by_name", sa.String(255), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("decision_reason", sa.Text(), nullable=True),
        sa.Column("notification_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notification_sent_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.UniqueConstraint(
            "organization_id",
            "cycle_config_id",
            name="uq_letters_of_interest_org_cycle",
        ),
    )
    op.create_index("ix_letters_of_interest_status", "letters_of_interest", ["status"])
    op.create_index(
        "ix_letters_of_interest_release",
        "letters_of_interest",
        ["status", "notification_sent"],
    )

    op.create_table(
        "loi_status_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "loi_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("letters_of_interest.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_history_columns(),
    )
    op.create_index(
        "ix_loi_status_history_loi_id_created_at",
        "loi_status_history",
        ["loi_id", "created_at"],
    )

    # ==========================================================================
    # Applications
    # ==========================================================================
    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "cycle_config_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("grant_cycle_configs.id"),
            nullable=False,
        ),
        sa.Column(
            "loi_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("letters_of_interest.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("status", sa.String(32), nullable=False, server_default="DRAFT"),
        sa.Column("project_title", sa.String(500), nullable=True),
        sa.Column("project_description", sa.Text(), nullable=True),
        sa.Column("focus_area", sa.String(100), nullable=True),
        sa.Column("project_category", sa.String(100), nullable=True),
        sa.Column("amount_requested", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_project_budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("percentage_requested", sa.Numeric(5, 2), nullable=True),
        sa.Column("mission_statement", sa.Text(), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("submitted_by_id", sa.String(255), nullable=True),
        sa.Column("submitted_by_name", sa.String(255), nullable=True),
        sa.Column("decided_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("decided_by_id", sa.String(255), nullable=True),
        sa.Column("decided_by_name", sa.String(255), nullable=True),
        sa.Column("decision_reason", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_applications_org_cycle", "applications", ["organization_id", "cycle_config_id"])
    op.create_index(
        "uq_applications_direct_org_cycle",
        "applications",
        ["organization_id", "cycle_config_id"],
        unique=True,
        postgresql_where=sa.text("loi_id IS NULL"),
    )
    op.create_index("ix_applications_status", "applications", ["status"])

    op.create_table(
        "status_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_history_columns(),
    )
    op.create_index(
        "ix_status_history_application_id_created_at",
        "status_history",
        ["application_id", "created_at"],
    )

    op.create_table(
        "communications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("direction", sa.String(16), nullable=False),
        sa.Column("type", sa.String(32), nullable=False, server_default="portal_message"),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("sent_by_id", sa.String(255), nullable=True),
        sa.Column("sent_by_name", sa.String(255), nullable=True),
        sa.Column("response_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("response_content", sa.Text(), nullable=True),
        sa.Column("response_deadline", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("response_received_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_communications_application_id", "communications", ["application_id"])

    # ==========================================================================
    # Reviewer input
    # ==========================================================================
    op.create_table(
        "votes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reviewer_id", sa.String(255), nullable=False),
        sa.Column("reviewer_name", sa.String(255), nullable=False),
        sa.Column("vote", sa.String(16), nullable=False, server_default="ABSTAIN"),
        sa.Column("comments", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("application_id", "reviewer_id", name="uq_votes_application_reviewer"),
    )
    op.create_index("ix_votes_application_id", "votes", ["application_id"])

    op.create_table(
        "budget_assessments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reviewer_id", sa.String(255), nullable=False),
        sa.Column("reviewer_name", sa.String(255), nullable=False),
        sa.Column("budget_reasonableness_score", sa.Integer(), nullable=True),
        sa.Column("cost_efficiency_score", sa.Integer(), nullable=True),
        sa.Column("budget_detail_score", sa.Integer(), nullable=True),
        sa.Column("sustainability_score", sa.Integer(), nullable=True),
        sa.Column("composite_score", sa.Numeric(4, 2), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "application_id",
            "reviewer_id",
            name="uq_budget_assessments_application_reviewer",
        ),
    )
    op.create_index("ix_budget_assessments_application_id", "budget_assessments", ["application_id"])

    op.create_table(
        "review_notes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.String(255), nullable=False),
        sa.Column("author_name", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
    )
    op.create_index(
        "ix_review_notes_application_id_created_at",
        "review_notes",
        ["application_id", "created_at"],
    )

    # ==========================================================================
    # Administrative audit log
    # ==========================================================================
    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "timestamp",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("actor_id", sa.String(255), nullable=False),
        sa.Column("actor_email", sa.String(320), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=False),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=True),
    )
    op.create_index(
        "ix_audit_logs_resource_type_resource_id",
        "audit_logs",
        ["resource_type", "resource_id"],
    )
    op.create_index("ix_audit_logs_action_timestamp", "audit_logs", ["action", "timestamp"])


def downgrade() -> None:
    """Drop all tables."""

    # Drop tables in reverse order of creation (due to foreign keys)
    op.drop_table("audit_logs")
    op.drop_table("review_notes")
    op.drop_table("budget_assessments")
    op.drop_table("votes")
    op.drop_table("communications")
    op.drop_table("status_history")
    op.drop_table("applications")
    op.drop_table("loi_status_history")
    op.drop_table("letters_of_interest")
    op.drop_table("grant_cycle_configs")
    op.drop_table("users")
    op.drop_table("organizations")
