"""Inbound message webhook deduplication.

Providers deliver message webhooks at least once; this service applies each
external_id at most once. The stored row, the conversation update and any
opt-out are written in one transaction, so a crash before commit leaves
nothing behind and the provider's redelivery is processed normally.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.dtos.automation import IngestOutcome, IngestStatus
from app.infrastructure.persistence.repositories.message_repo import (
    ConversationRepository,
    InboundMessageRepository,
    OptOutRepository,
    OutboundMessageRepository,
)
from app.shared.enums import MessageDirection
from app.shared.telemetry.logging import get_logger
from app.shared.telemetry.tracing import add_span_attributes, add_span_event, traced
from app.shared.utils.datetime import parse_iso_utc, utc_now
from app.shared.utils.sanitization import preview

logger = get_logger(__name__)

DEFAULT_OPT_OUT_KEYWORDS = frozenset(
    {"STOP", "STOPALL", "UNSUBSCRIBE", "CANCEL", "END", "QUIT"}
)


@dataclass(frozen=True)
class ProviderMessage:
    """Provider-neutral view of one message webhook."""

    record_type: str | None
    external_id: str | None
    direction: str | None
    from_address: str | None
    to_address: str | None
    text: str | None
    status: str | None
    occurred_at: str | None


def _address(value: Any) -> str | None:
    """Phone number from a string, a {phone_number} object, or the first of a list."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, Mapping):
        value = value.get("phone_number") or value.get("address")
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _receipt_status(payload: Mapping[str, Any], event_type: str | None) -> str | None:
    if payload.get("status"):
        return str(payload["status"])
    to = payload.get("to")
    if isinstance(to, list) and to and isinstance(to[0], Mapping) and to[0].get("status"):
        return str(to[0]["status"])
    if event_type and "." in event_type:
        return event_type.rsplit(".", 1)[-1]
    return None


def normalize_payload(payload: Any) -> ProviderMessage | None:
    """Accept a flat {record_type, direction, from, to, text, id, status?} body or
    a nested {data: {event_type, payload: {...}}} body. None when not an object."""
    if not isinstance(payload, Mapping):
        return None
    event_type: str | None = None
    body: Mapping[str, Any] = payload
    data = payload.get("data")
    if isinstance(data, Mapping):
        event_type = data.get("event_type")
        inner = data.get("payload")
        body = inner if isinstance(inner, Mapping) else data
    external_id = body.get("id")
    occurred_at = body.get("received_at") or body.get("occurred_at")
    return ProviderMessage(
        record_type=body.get("record_type") or payload.get("record_type"),
        external_id=str(external_id) if external_id not in (None, "") else None,
        direction=(body.get("direction") or "").lower() or None,
        from_address=_address(body.get("from")),
        to_address=_address(body.get("to")),
        text=body.get("text") if isinstance(body.get("text"), str) else None,
        status=_receipt_status(body, event_type),
        occurred_at=occurred_at if isinstance(occurred_at, str) else None,
    )


class WebhookDeduplicator:
    """Applies provider message webhooks to message and conversation state."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        opt_out_keywords: frozenset[str] = DEFAULT_OPT_OUT_KEYWORDS,
        preview_length: int = 100,
    ) -> None:
        self.session_factory = session_factory
        self.opt_out_keywords = frozenset(k.upper() for k in opt_out_keywords)
        self.preview_length = preview_length

    def is_opt_out(self, text: str | None) -> bool:
        """Exact keyword match after trimming, case-insensitive."""
        return bool(text) and text.strip().upper() in self.opt_out_keywords

    @traced("webhook_deduplicator.ingest")
    async def ingest(self, payload: Any) -> IngestOutcome:
        """Process one delivery. Never raises for malformed input; returns the outcome."""
        message = normalize_payload(payload)
        if message is None:
            logger.warning("Webhook payload is not a JSON object; ignoring")
            return IngestOutcome(status=IngestStatus.INVALID)
        if message.record_type != "message":
            logger.info("Ignoring webhook record_type=%r", message.record_type)
            return IngestOutcome(status=IngestStatus.IGNORED)
        if not message.external_id:
            logger.warning("Message webhook without id; ignoring")
            return IngestOutcome(status=IngestStatus.INVALID)
        add_span_attributes(external_id=message.external_id)
        if message.direction == MessageDirection.OUTBOUND.value:
            return await self._apply_receipt(message)
        return await self._apply_inbound(message, dict(payload))

    async def _apply_receipt(self, message: ProviderMessage) -> IngestOutcome:
        if not message.status:
            return IngestOutcome(status=IngestStatus.IGNORED, external_id=message.external_id)
        async with self.session_factory() as session, session.begin():
            updated = await OutboundMessageRepository(session).update_status(
                message.external_id or "", message.status, utc_now()
            )
        if not updated:
            logger.info(
                "Delivery receipt for unrecorded message %s (status=%s)",
                message.external_id,
                message.status,
            )
            return IngestOutcome(status=IngestStatus.IGNORED, external_id=message.external_id)
        logger.info("Message %s status -> %s", message.external_id, message.status)
        return IngestOutcome(
            status=IngestStatus.STATUS_UPDATED, external_id=message.external_id
        )

    async def _apply_inbound(
        self, message: ProviderMessage, raw_payload: dict[str, Any]
    ) -> IngestOutcome:
        received_at: datetime = parse_iso_utc(message.occurred_at) or utc_now()
        values: dict[str, Any] = {
            "external_id": message.external_id,
            "direction": MessageDirection.INBOUND.value,
            "from_address": message.from_address,
            "to_address": message.to_address,
            "content": message.text,
            "status": "received",
            "raw_payload": raw_payload,
            "received_at": received_at,
        }
        async with self.session_factory() as session, session.begin():
            messages = InboundMessageRepository(session)
            message_id = await messages.insert_if_absent(values)
            if message_id is None:
                logger.info("Duplicate delivery of message %s; no-op", message.external_id)
                add_span_event("webhook.duplicate", {"external_id": message.external_id})
                return IngestOutcome(
                    status=IngestStatus.DUPLICATE, external_id=message.external_id
                )
            conversations = ConversationRepository(session)
            conversation = (
                await conversations.find_active_by_address(message.from_address)
                if message.from_address
                else None
            )
            conversation_id = conversation.id if conversation else None
            if conversation_id:
                await messages.link_conversation(message_id, conversation_id)

            opt_out = self.is_opt_out(message.text)
            if opt_out and not message.from_address:
                logger.warning(
                    "Opt-out keyword in message %s without a sender address; not recorded",
                    message.external_id,
                )
            elif opt_out and message.from_address:
                if conversation_id:
                    await conversations.stop(conversation_id, received_at)
                await OptOutRepository(session).record(
                    message.from_address,
                    (message.text or "").strip().upper(),
                    conversation_id,
                    received_at,
                )
                logger.info(
                    "Opt-out from %s (conversation=%s)", message.from_address, conversation_id
                )
                return IngestOutcome(
                    status=IngestStatus.OPTED_OUT,
                    external_id=message.external_id,
                    message_id=message_id,
                    conversation_id=conversation_id,
                )

            if conversation_id is None:
                logger.info(
                    "Message %s has no active conversation; stored unlinked",
                    message.external_id,
                )
                return IngestOutcome(
                    status=IngestStatus.UNLINKED,
                    external_id=message.external_id,
                    message_id=message_id,
                )
            await conversations.record_inbound(
                conversation_id,
                received_at,
                preview(message.text, self.preview_length),
            )
        return IngestOutcome(
            status=IngestStatus.STORED,
            external_id=message.external_id,
            message_id=message_id,
            conversation_id=conversation_id,
        )
