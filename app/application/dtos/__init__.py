"""Application DTOs (no ORM dependency)."""

from app.application.dtos.automation import (
    DispatchSummary,
    EnqueueResult,
    IngestOutcome,
    IngestStatus,
    RetrySweepResult,
    TriggerMatch,
)
from app.application.dtos.messaging import EmailMessage, SendReceipt, SmsMessage

__all__ = [
    "DispatchSummary",
    "EmailMessage",
    "EnqueueResult",
    "IngestOutcome",
    "IngestStatus",
    "RetrySweepResult",
    "SendReceipt",
    "SmsMessage",
    "TriggerMatch",
]
