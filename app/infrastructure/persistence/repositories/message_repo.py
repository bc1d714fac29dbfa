"""InboundMessage, OutboundMessage, Conversation and OptOut repositories."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.persistence.models.messaging import (
    Conversation,
    InboundMessage,
    OptOut,
    OutboundMessage,
)
from app.infrastructure.persistence.repositories.base import BaseRepository
from app.shared.enums import ConversationStatus


class InboundMessageRepository(BaseRepository[InboundMessage]):
    """Provider message events keyed by external_id."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, InboundMessage)

    async def insert_if_absent(self, values: dict[str, Any]) -> str | None:
        """Store the event unless its external_id was seen before.

        Returns the new row id, or None for a duplicate delivery.
        """
        return await self.insert_ignoring_conflict(values, ("external_id",))

    async def get_by_external_id(self, external_id: str) -> InboundMessage | None:
        result = await self.db.execute(
            select(InboundMessage)
            .where(InboundMessage.external_id == external_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def link_conversation(self, message_id: str, conversation_id: str) -> None:
        await self.db.execute(
            update(InboundMessage)
            .where(InboundMessage.id == message_id)
            .values(conversation_id=conversation_id)
        )


class OutboundMessageRepository(BaseRepository[OutboundMessage]):
    """SMS sent by automation steps, matched to delivery receipts by external_id."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, OutboundMessage)

    async def record(self, values: dict[str, Any]) -> str | None:
        """Store a sent message. None when its external_id is already stored."""
        return await self.insert_ignoring_conflict(values, ("external_id",))

    async def get_by_external_id(self, external_id: str) -> OutboundMessage | None:
        result = await self.db.execute(
            select(OutboundMessage)
            .where(OutboundMessage.external_id == external_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_status(
        self, external_id: str, status: str, updated_at: datetime
    ) -> bool:
        """Set delivery status for a sent message. False when external_id is unknown."""
        result = await self.db.execute(
            update(OutboundMessage)
            .where(OutboundMessage.external_id == external_id)
            .values(status=status, status_updated_at=updated_at, updated_at=updated_at)
        )
        return result.rowcount == 1


class ConversationRepository(BaseRepository[Conversation]):
    """SMS conversations; counters change only through atomic UPDATEs."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Conversation)

    async def find_active_by_address(self, address: str) -> Conversation | None:
        """Most recently active conversation with the counterparty, if any."""
        result = await self.db.execute(
            select(Conversation)
            .where(
                Conversation.counterparty_address == address,
                Conversation.status == ConversationStatus.ACTIVE.value,
            )
            .order_by(Conversation.updated_at.desc(), Conversation.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def record_inbound(
        self, conversation_id: str, received_at: datetime, preview: str
    ) -> bool:
        """unread_count + 1 and last-message fields, in one statement."""
        result = await self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(
                unread_count=Conversation.unread_count + 1,
                last_message_at=received_at,
                last_message_preview=preview,
                updated_at=received_at,
            )
        )
        return result.rowcount == 1

    async def stop(self, conversation_id: str, stopped_at: datetime) -> bool:
        """active -> stopped. Unread counters are left as they are."""
        result = await self.db.execute(
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                Conversation.status == ConversationStatus.ACTIVE.value,
            )
            .values(
                status=ConversationStatus.STOPPED.value,
                stopped_at=stopped_at,
                updated_at=stopped_at,
            )
        )
        return result.rowcount == 1


class OptOutRepository(BaseRepository[OptOut]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, OptOut)

    async def record(
        self,
        phone_number: str,
        keyword: str,
        conversation_id: str | None,
        opted_out_at: datetime,
    ) -> OptOut:
        return await self.create(
            OptOut(
                phone_number=phone_number,
                keyword=keyword,
                conversation_id=conversation_id,
                opted_out_at=opted_out_at,
            )
        )

    async def is_opted_out(self, phone_number: str) -> bool:
        result = await self.db.execute(
            select(OptOut.id).where(OptOut.phone_number == phone_number).limit(1)
        )
        return result.scalar_one_or_none() is not None
