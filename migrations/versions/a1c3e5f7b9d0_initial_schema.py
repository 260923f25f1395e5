"""Initial schema: tenants, identity, hierarchy, scopes, panel tables, audit.

Revision ID: a1c3e5f7b9d0
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "a1c3e5f7b9d0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("slug", sa.String(60), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("uq_tenants_slug_lower", "tenants", [sa.text("lower(slug)")], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(160), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "uq_users_email_active",
        "users",
        [sa.text("lower(email)")],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
        sqlite_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "tenant_members",
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_tenant_members_user_id", "tenant_members", ["user_id"])

    op.create_table(
        "church_networks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("code", sa.String(30), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "code", name="uq_church_networks_tenant_code"),
    )

    op.create_table(
        "cells",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("network_id", sa.Integer(), sa.ForeignKey("church_networks.id"), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("code", sa.String(30), nullable=False),
        sa.Column("leader_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("email", sa.String(160), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "code", name="uq_cells_tenant_code"),
    )
    op.create_index("idx_cells_tenant_network", "cells", ["tenant_id", "network_id"])

    op.create_table(
        "user_network_scopes",
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("network_id", sa.Integer(), sa.ForeignKey("church_networks.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "user_cell_scopes",
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("cell_id", sa.Integer(), sa.ForeignKey("cells.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("full_name", sa.String(160), nullable=False),
        sa.Column("email", sa.String(160), nullable=True),
        sa.Column("phone_home", sa.String(30), nullable=True),
        sa.Column("phone_mobile", sa.String(30), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_participants_tenant_name", "participants", ["tenant_id", "full_name"])

    op.create_table(
        "participant_cell_links",
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("participants.id"), primary_key=True),
        sa.Column("cell_id", sa.Integer(), sa.ForeignKey("cells.id"), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_participant_cell_links_tenant_cell", "participant_cell_links", ["tenant_id", "cell_id"])

    op.create_table(
        "participant_status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("participants.id"), nullable=False),
        sa.Column("from_type", sa.String(20), nullable=True),
        sa.Column("to_type", sa.String(20), nullable=False),
        sa.Column("changed_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )

    op.create_table(
        "transfer_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("source_cell_id", sa.Integer(), sa.ForeignKey("cells.id"), nullable=False),
        sa.Column("destination_cell_id", sa.Integer(), sa.ForeignKey("cells.id"), nullable=False),
        sa.Column("transferred_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("transferred_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "transfer_log_participants",
        sa.Column("transfer_log_id", sa.Integer(), sa.ForeignKey("transfer_logs.id"), primary_key=True),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("participants.id"), primary_key=True),
    )

    op.create_table(
        "attendance_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("cell_id", sa.Integer(), sa.ForeignKey("cells.id"), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("total_attendance", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tenant_id", "cell_id", "week_start", name="uq_attendance_tenant_cell_week"),
    )

    op.create_table(
        "finance_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("direction IN ('in', 'out')", name="ck_finance_entries_direction"),
    )
    op.create_index("idx_finance_entries_tenant_date", "finance_entries", ["tenant_id", "entry_date"])

    op.create_table(
        "module_name_defaults",
        sa.Column("code", sa.String(60), primary_key=True),
        sa.Column("default_label", sa.String(120), nullable=False),
    )
    op.create_table(
        "module_name_overrides",
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), primary_key=True),
        sa.Column("code", sa.String(60), sa.ForeignKey("module_name_defaults.code"), primary_key=True),
        sa.Column("custom_label", sa.String(120), nullable=False),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "gd_controls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("network_id", sa.Integer(), sa.ForeignKey("church_networks.id"), nullable=True),
        sa.Column("cell_id", sa.Integer(), sa.ForeignKey("cells.id"), nullable=True),
        sa.Column("meeting_type", sa.String(20), nullable=False),
        sa.Column("leader_name", sa.String(160), nullable=False),
        sa.Column("meeting_date", sa.Date(), nullable=False),
        sa.Column("meeting_time", sa.Time(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_gd_controls_tenant_date", "gd_controls", ["tenant_id", "meeting_date"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("sent_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("target_group", sa.String(60), nullable=False),
        sa.Column("recipients_count", sa.Integer(), nullable=False),
        sa.Column("subject", sa.String(200), nullable=False),
        sa.Column("body_html", sa.Text(), nullable=False),
        sa.Column("attachment_name", sa.String(200), nullable=True),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "consolidation_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("participants.id"), nullable=False),
        sa.Column("congregation_name", sa.String(160), nullable=True),
        sa.Column("request_text", sa.Text(), nullable=True),
        sa.Column("known_by", sa.String(30), nullable=False),
        sa.Column("known_by_other", sa.String(120), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "idx_consolidation_records_tenant_created", "consolidation_records", ["tenant_id", "created_at"]
    )

    step_columns: list[sa.Column] = []
    for step in (
        "accepted_in_church",
        "fono_visit_done",
        "first_visit_done",
        "pre_encounter_done",
        "encounter_done",
        "post_encounter_done",
        "reencounter_done",
        "consolidation_done",
        "baptized",
    ):
        step_columns.append(sa.Column(step, sa.Boolean(), nullable=True))
        step_columns.append(sa.Column(f"{step}_date", sa.Date(), nullable=True))
    op.create_table(
        "consolidation_steps",
        sa.Column(
            "consolidation_id", sa.Integer(), sa.ForeignKey("consolidation_records.id"), primary_key=True
        ),
        *step_columns,
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "consolidation_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("consolidation_id", sa.Integer(), sa.ForeignKey("consolidation_records.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_user_email", sa.String(160), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
    )
    op.create_index("idx_audit_events_tenant_created", "audit_events", ["tenant_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_audit_events_tenant_created", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("consolidation_history")
    op.drop_table("consolidation_steps")
    op.drop_index("idx_consolidation_records_tenant_created", table_name="consolidation_records")
    op.drop_table("consolidation_records")
    op.drop_table("email_logs")
    op.drop_index("idx_gd_controls_tenant_date", table_name="gd_controls")
    op.drop_table("gd_controls")
    op.drop_table("module_name_overrides")
    op.drop_table("module_name_defaults")
    op.drop_index("idx_finance_entries_tenant_date", table_name="finance_entries")
    op.drop_table("finance_entries")
    op.drop_table("attendance_entries")
    op.drop_table("transfer_log_participants")
    op.drop_table("transfer_logs")
    op.drop_table("participant_status_history")
    op.drop_index("idx_participant_cell_links_tenant_cell", table_name="participant_cell_links")
    op.drop_table("participant_cell_links")
    op.drop_index("idx_participants_tenant_name", table_name="participants")
    op.drop_table("participants")
    op.drop_table("user_cell_scopes")
    op.drop_table("user_network_scopes")
    op.drop_index("idx_cells_tenant_network", table_name="cells")
    op.drop_table("cells")
    op.drop_table("church_networks")
    op.drop_index("ix_tenant_members_user_id", table_name="tenant_members")
    op.drop_table("tenant_members")
    op.drop_index("uq_users_email_active", table_name="users")
    op.drop_table("users")
    op.drop_index("uq_tenants_slug_lower", table_name="tenants")
    op.drop_table("tenants")
