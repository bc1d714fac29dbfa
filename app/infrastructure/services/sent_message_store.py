"""Sent SMS history, written after the provider accepts a message."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.dtos.messaging import SendReceipt, SmsMessage
from app.infrastructure.persistence.repositories.message_repo import (
    OutboundMessageRepository,
)
from app.shared.telemetry.logging import get_logger
from app.shared.utils.datetime import utc_now

logger = get_logger(__name__)


class SentMessageStore:
    """Records each sent SMS in its own short transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def record_sms(
        self,
        message: SmsMessage,
        receipt: SendReceipt,
        *,
        execution_id: str | None,
        step_id: str,
    ) -> None:
        async with self.session_factory() as session, session.begin():
            new_id = await OutboundMessageRepository(session).record(
                {
                    "external_id": receipt.external_id,
                    "execution_id": execution_id,
                    "step_id": step_id,
                    "to_address": message.to,
                    "from_address": message.from_number,
                    "content": message.body,
                    "status": "sent",
                    "sent_at": utc_now(),
                }
            )
        if new_id is None:
            logger.info("Sent message %s already recorded", receipt.external_id)
