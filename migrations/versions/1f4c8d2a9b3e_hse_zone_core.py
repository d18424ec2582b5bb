"""Zones, responsibilities, delegations, work items and audit entries.

Revision ID: 1f4c8d2a9b3e
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "1f4c8d2a9b3e"
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names, matching SQLModel's default mapping.
AGENT_ROLE = sa.Enum("ADMIN", "HSE", "PROFILE", name="agentrole")
REPORT_STATUS = sa.Enum("UNOPENED", "OPENED", "CLOSED", name="reportstatus")
WORK_ITEM_KIND = sa.Enum(
    "REPORT", "ACTION", "CORRECTIVE_ACTION", "SUB_ACTION", name="workitemkind"
)
WORK_ITEM_STATUS = sa.Enum(
    "NOT_STARTED", "IN_PROGRESS", "COMPLETED", "CANCELED", "ABORTED", name="workitemstatus"
)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    # --- agents table ---
    if not inspector.has_table("agents"):
        op.create_table(
            "agents",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("role", AGENT_ROLE, nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f("ix_agents_name"), "agents", ["name"])
        op.create_index(op.f("ix_agents_email"), "agents", ["email"])
        op.create_index(op.f("ix_agents_role"), "agents", ["role"])
        op.create_index(op.f("ix_agents_is_active"), "agents", ["is_active"])

    # --- zones table ---
    if not inspector.has_table("zones"):
        op.create_table(
            "zones",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("code", sa.String(), nullable=False),
            sa.Column("description", sa.String(), nullable=False, server_default=""),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f("ix_zones_name"), "zones", ["name"])
        op.create_index(op.f("ix_zones_code"), "zones", ["code"], unique=True)
        op.create_index(op.f("ix_zones_is_active"), "zones", ["is_active"])

    # --- zone_responsibilities table ---
    if not inspector.has_table("zone_responsibilities"):
        op.create_table(
            "zone_responsibilities",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("agent_id", sa.Uuid(), nullable=False),
            sa.Column("zone_id", sa.Uuid(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("assigned_by", sa.Uuid(), nullable=True),
            sa.Column("assigned_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["agent_id"], ["agents.id"]),
            sa.ForeignKeyConstraint(["zone_id"], ["zones.id"]),
            sa.ForeignKeyConstraint(["assigned_by"], ["agents.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            op.f("ix_zone_responsibilities_agent_id"), "zone_responsibilities", ["agent_id"]
        )
        op.create_index(
            op.f("ix_zone_responsibilities_zone_id"), "zone_responsibilities", ["zone_id"]
        )
        op.create_index(
            op.f("ix_zone_responsibilities_is_active"), "zone_responsibilities", ["is_active"]
        )
        op.create_index(
            "uq_zone_responsibilities_active_zone",
            "zone_responsibilities",
            ["zone_id"],
            unique=True,
            postgresql_where=sa.text("is_active"),
            sqlite_where=sa.text("is_active = 1"),
        )

    # --- zone_delegations table ---
    if not inspector.has_table("zone_delegations"):
        op.create_table(
            "zone_delegations",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("zone_id", sa.Uuid(), nullable=False),
            sa.Column("from_agent_id", sa.Uuid(), nullable=False),
            sa.Column("to_agent_id", sa.Uuid(), nullable=False),
            sa.Column("start_at", sa.DateTime(), nullable=False),
            sa.Column("end_at", sa.DateTime(), nullable=False),
            sa.Column("reason", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.Uuid(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["zone_id"], ["zones.id"]),
            sa.ForeignKeyConstraint(["from_agent_id"], ["agents.id"]),
            sa.ForeignKeyConstraint(["to_agent_id"], ["agents.id"]),
            sa.ForeignKeyConstraint(["created_by"], ["agents.id"]),
            sa.CheckConstraint("start_at < end_at", name="ck_zone_delegations_window"),
            sa.PrimaryKeyConstraint("id"),
        )
        for column in ("zone_id", "from_agent_id", "to_agent_id", "start_at", "end_at", "is_active"):
            op.create_index(
                op.f(f"ix_zone_delegations_{column}"), "zone_delegations", [column]
            )

    # --- reports table ---
    if not inspector.has_table("reports"):
        op.create_table(
            "reports",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("tracking_number", sa.String(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.String(), nullable=False, server_default=""),
            sa.Column("report_type", sa.String(), nullable=False, server_default="incident"),
            sa.Column("zone_id", sa.Uuid(), nullable=False),
            sa.Column("reporter_company_id", sa.String(), nullable=True),
            sa.Column("incident_at", sa.DateTime(), nullable=True),
            sa.Column("status", REPORT_STATUS, nullable=False),
            sa.Column("created_by", sa.Uuid(), nullable=True),
            sa.Column("opened_by", sa.Uuid(), nullable=True),
            sa.Column("opened_at", sa.DateTime(), nullable=True),
            sa.Column("closed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["zone_id"], ["zones.id"]),
            sa.ForeignKeyConstraint(["created_by"], ["agents.id"]),
            sa.ForeignKeyConstraint(["opened_by"], ["agents.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            op.f("ix_reports_tracking_number"), "reports", ["tracking_number"], unique=True
        )
        for column in ("report_type", "zone_id", "status", "created_by"):
            op.create_index(op.f(f"ix_reports_{column}"), "reports", [column])

    # --- actions table (actions and corrective actions) ---
    if not inspector.has_table("actions"):
        op.create_table(
            "actions",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("report_id", sa.Uuid(), nullable=False),
            sa.Column("kind", WORK_ITEM_KIND, nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.String(), nullable=False, server_default=""),
            sa.Column("hierarchy", sa.String(), nullable=False, server_default=""),
            sa.Column("priority", sa.String(), nullable=False, server_default="Medium"),
            sa.Column("due_at", sa.DateTime(), nullable=True),
            sa.Column("status", WORK_ITEM_STATUS, nullable=False),
            sa.Column("created_by", sa.Uuid(), nullable=False),
            sa.Column("assigned_to_id", sa.Uuid(), nullable=True),
            sa.Column("aborted_by", sa.Uuid(), nullable=True),
            sa.Column("aborted_at", sa.DateTime(), nullable=True),
            sa.Column("abort_reason", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["report_id"], ["reports.id"]),
            sa.ForeignKeyConstraint(["created_by"], ["agents.id"]),
            sa.ForeignKeyConstraint(["assigned_to_id"], ["agents.id"]),
            sa.ForeignKeyConstraint(["aborted_by"], ["agents.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        for column in ("report_id", "kind", "status", "created_by", "assigned_to_id"):
            op.create_index(op.f(f"ix_actions_{column}"), "actions", [column])

    # --- sub_actions table ---
    if not inspector.has_table("sub_actions"):
        op.create_table(
            "sub_actions",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("action_id", sa.Uuid(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.String(), nullable=True),
            sa.Column("status", WORK_ITEM_STATUS, nullable=False),
            sa.Column("due_at", sa.DateTime(), nullable=True),
            sa.Column("created_by", sa.Uuid(), nullable=False),
            sa.Column("assigned_to_id", sa.Uuid(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["action_id"], ["actions.id"]),
            sa.ForeignKeyConstraint(["created_by"], ["agents.id"]),
            sa.ForeignKeyConstraint(["assigned_to_id"], ["agents.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        for column in ("action_id", "status", "created_by", "assigned_to_id"):
            op.create_index(op.f(f"ix_sub_actions_{column}"), "sub_actions", [column])

    # --- audit_entries table ---
    if not inspector.has_table("audit_entries"):
        op.create_table(
            "audit_entries",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("zone_id", sa.Uuid(), nullable=True),
            sa.Column("actor_id", sa.Uuid(), nullable=False),
            sa.Column("action", sa.String(), nullable=False),
            sa.Column("target_type", sa.String(), nullable=False, server_default=""),
            sa.Column("target_id", sa.Uuid(), nullable=True),
            sa.Column("payload", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["zone_id"], ["zones.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        for column in ("zone_id", "actor_id", "action"):
            op.create_index(op.f(f"ix_audit_entries_{column}"), "audit_entries", [column])


def downgrade() -> None:
    for table in (
        "audit_entries",
        "sub_actions",
        "actions",
        "reports",
        "zone_delegations",
        "zone_responsibilities",
        "zones",
        "agents",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum in (WORK_ITEM_STATUS, WORK_ITEM_KIND, REPORT_STATUS, AGENT_ROLE):
        enum.drop(bind, checkfirst=True)
