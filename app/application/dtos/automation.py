"""DTOs for trigger detection, retry sweeps and webhook ingestion results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.shared.enums import TriggerType


@dataclass(frozen=True)
class TriggerMatch:
    """A workflow that matched one mutation, with the data its execution will see."""

    workflow_id: str
    trigger_type: TriggerType
    trigger_data: dict[str, Any]
    event_key: str


@dataclass(frozen=True)
class EnqueueResult:
    execution_id: str
    workflow_id: str
    created: bool


@dataclass
class RetrySweepResult:
    """Counts for one retry sweep. exhausted lists ids at the retry ceiling."""

    retried: int = 0
    errors: int = 0
    exhausted: list[str] = field(default_factory=list)


@dataclass
class DispatchSummary:
    dispatched: int = 0
    completed: int = 0
    failed: int = 0


class IngestStatus(str, Enum):
    """What one webhook delivery did."""

    IGNORED = "ignored"
    INVALID = "invalid"
    DUPLICATE = "duplicate"
    STORED = "stored"
    UNLINKED = "unlinked"
    OPTED_OUT = "opted_out"
    STATUS_UPDATED = "status_updated"


@dataclass(frozen=True)
class IngestOutcome:
    status: IngestStatus
    external_id: str | None = None
    message_id: str | None = None
    conversation_id: str | None = None
