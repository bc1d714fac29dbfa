"""Application layer: DTOs and interfaces.

Depends only on domain and protocol definitions (DIP).
Infrastructure implements the interfaces (senders, repositories).
"""

from app.application.dtos import (
    EmailMessage,
    IngestOutcome,
    RetrySweepResult,
    SendReceipt,
    SmsMessage,
)
from app.application.interfaces import IEmailSender, ISmsSender, Sleeper

__all__ = [
    "EmailMessage",
    "IEmailSender",
    "ISmsSender",
    "IngestOutcome",
    "RetrySweepResult",
    "SendReceipt",
    "Sleeper",
    "SmsMessage",
]
