"""Shared utilities: enums, telemetry, and cross-cutting helpers.

Used by domain, infrastructure and API layers. No business logic.
"""

from app.shared.enums import (
    ConditionOperator,
    ConversationStatus,
    ExecutionStatus,
    MessageDirection,
    MutationType,
    StepResultStatus,
    StepType,
    TriggerType,
)
from app.shared.utils import (
    compute_event_key,
    ensure_utc,
    generate_cuid,
    utc_now,
)

__all__ = [
    "ConditionOperator",
    "ConversationStatus",
    "ExecutionStatus",
    "MessageDirection",
    "MutationType",
    "StepResultStatus",
    "StepType",
    "TriggerType",
    "compute_event_key",
    "generate_cuid",
    "utc_now",
    "ensure_utc",
]
