"""initial_automation_schema

Revision ID: a3f9c1d2e8b7
Revises:
Create Date: 2026-10-19 09:12:44.102311

"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a3f9c1d2e8b7"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "automation_workflow",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("trigger_type", sa.String(), nullable=False),
        sa.Column("from_status", sa.String(), nullable=True),
        sa.Column("to_status", sa.String(), nullable=True),
        sa.Column("trigger_conditions", sa.JSON(), nullable=False),
        sa.Column("steps", sa.JSON(), nullable=False),
        sa.Column(
            "is_active", sa.Boolean(), server_default=sa.true(), nullable=False
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "trigger_type IN ('entity_created', 'entity_updated', 'status_changed_to', "
            "'status_changed_from', 'status_transition')",
            name="automation_workflow_trigger_type_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_workflow_entity_trigger_active",
        "automation_workflow",
        ["entity_type", "trigger_type", "is_active"],
    )

    op.create_table(
        "automation_execution_log",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_id", sa.String(), nullable=False),
        sa.Column("event_key", sa.String(), nullable=False),
        sa.Column("trigger_type", sa.String(), nullable=True),
        sa.Column("trigger_data", sa.JSON(), nullable=False),
        sa.Column("context", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("step_results", sa.JSON(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="automation_execution_log_status_check",
        ),
        sa.ForeignKeyConstraint(
            ["workflow_id"], ["automation_workflow.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "workflow_id", "event_key", name="uq_automation_execution_log_workflow_event"
        ),
    )
    op.create_index(
        "ix_automation_execution_log_workflow_id",
        "automation_execution_log",
        ["workflow_id"],
    )
    op.create_index(
        "ix_automation_execution_log_status",
        "automation_execution_log",
        ["status"],
    )
    op.create_index(
        "ix_automation_execution_log_status_completed",
        "automation_execution_log",
        ["status", "completed_at"],
    )

    op.create_table(
        "conversation",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("counterparty_address", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_message_preview", sa.Text(), nullable=True),
        sa.Column(
            "unread_count", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("stopped_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'stopped', 'archived')",
            name="conversation_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_conversation_counterparty_address",
        "conversation",
        ["counterparty_address"],
    )
    op.create_index("ix_conversation_client_id", "conversation", ["client_id"])

    op.create_table(
        "inbound_message",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("from_address", sa.String(), nullable=True),
        sa.Column("to_address", sa.String(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("conversation_id", sa.String(), nullable=True),
        sa.Column("raw_payload", sa.JSON(), nullable=False),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["conversation.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )
    op.create_index(
        "ix_inbound_message_conversation_id", "inbound_message", ["conversation_id"]
    )

    op.create_table(
        "sms_opt_out",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("phone_number", sa.String(), nullable=False),
        sa.Column("keyword", sa.String(), nullable=False),
        sa.Column("conversation_id", sa.String(), nullable=True),
        sa.Column(
            "opted_out_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["conversation.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sms_opt_out_phone_number", "sms_opt_out", ["phone_number"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_sms_opt_out_phone_number", table_name="sms_opt_out")
    op.drop_table("sms_opt_out")
    op.drop_index("ix_inbound_message_conversation_id", table_name="inbound_message")
    op.drop_table("inbound_message")
    op.drop_index("ix_conversation_client_id", table_name="conversation")
    op.drop_index("ix_conversation_counterparty_address", table_name="conversation")
    op.drop_table("conversation")
    op.drop_index(
        "ix_automation_execution_log_status_completed",
        table_name="automation_execution_log",
    )
    op.drop_index(
        "ix_automation_execution_log_status", table_name="automation_execution_log"
    )
    op.drop_index(
        "ix_automation_execution_log_workflow_id",
        table_name="automation_execution_log",
    )
    op.drop_table("automation_execution_log")
    op.drop_index(
        "ix_automation_workflow_entity_trigger_active",
        table_name="automation_workflow",
    )
    op.drop_table("automation_workflow")
