"""Service interfaces (ports) for the application layer.

Protocols define contracts for outbound channels the engine calls (DIP).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from app.application.dtos.messaging import EmailMessage, SendReceipt, SmsMessage


# Outbound SMS channel
class ISmsSender(Protocol):
    """Protocol for sending one SMS through a provider."""

    async def send(self, message: SmsMessage) -> SendReceipt:
        """Send the message. Raise SenderException when the provider rejects it."""


# Outbound email channel
class IEmailSender(Protocol):
    """Protocol for sending one email through a provider."""

    async def send(self, message: EmailMessage) -> SendReceipt:
        """Send the message. Raise SenderException when the provider rejects it."""


# Sent-message history (delivery receipts match against it)
class ISentMessageStore(Protocol):
    """Protocol for recording an SMS after the provider accepted it."""

    async def record_sms(
        self,
        message: SmsMessage,
        receipt: SendReceipt,
        *,
        execution_id: str | None,
        step_id: str,
    ) -> None:
        """Persist the sent message keyed by receipt.external_id."""


# Suspends the current execution for wait steps and retry backoff (asyncio.sleep by default).
Sleeper = Callable[[float], Awaitable[None]]
