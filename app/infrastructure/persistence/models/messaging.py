"""Conversation, InboundMessage, OutboundMessage and OptOut ORM models (SMS messaging)."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models.mixins import CuidMixin, IdentifiedModel
from app.shared.enums import ConversationStatus


class Conversation(IdentifiedModel, Base):
    """SMS conversation with one counterparty. Table: conversation."""

    __tablename__ = "conversation"

    counterparty_address: Mapped[str] = mapped_column(
        String, nullable=False, index=True
    )
    client_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=ConversationStatus.ACTIVE.value
    )
    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_message_preview: Mapped[str | None] = mapped_column(Text, nullable=True)
    unread_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    stopped_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(
                ", ".join(f"'{v}'" for v in ConversationStatus.values())
            ),
            name="conversation_status_check",
        ),
    )


class InboundMessage(IdentifiedModel, Base):
    """Provider message event keyed by external_id. Table: inbound_message.

    Immutable after insert except status (delivery receipts).
    """

    __tablename__ = "inbound_message"

    external_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    direction: Mapped[str] = mapped_column(String, nullable=False)
    from_address: Mapped[str | None] = mapped_column(String, nullable=True)
    to_address: Mapped[str | None] = mapped_column(String, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="received")
    conversation_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("conversation.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    raw_payload: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class OutboundMessage(IdentifiedModel, Base):
    """SMS sent by an automation step. Table: outbound_message.

    external_id is the provider id from the send receipt; delivery receipts
    update status by it.
    """

    __tablename__ = "outbound_message"

    external_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    execution_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("automation_execution_log.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    step_id: Mapped[str | None] = mapped_column(String, nullable=True)
    to_address: Mapped[str] = mapped_column(String, nullable=False, index=True)
    from_address: Mapped[str | None] = mapped_column(String, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="sent")
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    status_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class OptOut(CuidMixin, Base):
    """Phone number that replied with an opt-out keyword. Table: sms_opt_out."""

    __tablename__ = "sms_opt_out"

    phone_number: Mapped[str] = mapped_column(String, nullable=False, index=True)
    keyword: Mapped[str] = mapped_column(String, nullable=False)
    conversation_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("conversation.id", ondelete="SET NULL"),
        nullable=True,
    )
    opted_out_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
