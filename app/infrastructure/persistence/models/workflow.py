"""AutomationWorkflow and ExecutionLog ORM models. Entity-change-driven automation."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models.mixins import IdentifiedModel
from app.shared.enums import ExecutionStatus, TriggerType


def _in_check(column: str, values: list[str]) -> str:
    return "{} IN ({})".format(
        column, ", ".join("'{}'".format(v.replace("'", "''")) for v in values)
    )


class AutomationWorkflow(IdentifiedModel, Base):
    """Workflow definition. Table: automation_workflow. Trigger + steps JSON."""

    __tablename__ = "automation_workflow"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    trigger_type: Mapped[str] = mapped_column(String, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String, nullable=True)
    to_status: Mapped[str | None] = mapped_column(String, nullable=True)
    trigger_conditions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    steps: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.true()
    )

    __table_args__ = (
        Index(
            "ix_automation_workflow_entity_trigger_active",
            "entity_type",
            "trigger_type",
            "is_active",
        ),
        CheckConstraint(
            _in_check("trigger_type", TriggerType.values()),
            name="automation_workflow_trigger_type_check",
        ),
    )


class ExecutionLog(IdentifiedModel, Base):
    """One execution of one workflow for one triggering event. Table: automation_execution_log."""

    __tablename__ = "automation_execution_log"

    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("automation_workflow.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_key: Mapped[str] = mapped_column(String, nullable=False)
    trigger_type: Mapped[str | None] = mapped_column(String, nullable=True)
    trigger_data: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    context: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=ExecutionStatus.PENDING.value,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    step_results: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    # retry_count, retry_at, previous_errors [{error, failed_at, attempt}]
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "workflow_id", "event_key", name="uq_automation_execution_log_workflow_event"
        ),
        Index(
            "ix_automation_execution_log_status_completed",
            "status",
            "completed_at",
        ),
        CheckConstraint(
            _in_check("status", ExecutionStatus.values()),
            name="automation_execution_log_status_check",
        ),
    )
