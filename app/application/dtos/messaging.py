"""DTOs for outbound messages handed to SMS and email senders."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SmsMessage:
    """One outbound SMS."""

    to: str
    body: str
    from_number: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EmailMessage:
    """One outbound email. html is the rendered layout; text is the plain part."""

    to: str
    subject: str
    text: str
    html: str | None = None
    from_address: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SendReceipt:
    """Provider acknowledgement. external_id is the provider message id when known."""

    channel: str
    external_id: str | None = None
    accepted: bool = True
