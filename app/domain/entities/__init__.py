"""Domain entities and aggregates.

Pure domain models; no ORM or persistence concerns.
"""

from app.domain.entities.execution import (
    ALLOWED_TRANSITIONS,
    DispatchOutcome,
    StepResult,
    ensure_transition,
)
from app.domain.entities.mutation import EntityMutation
from app.domain.entities.workflow import (
    ActionStep,
    BranchStep,
    Condition,
    SendEmailStep,
    SendSmsStep,
    WaitStep,
    WorkflowEntity,
    parse_conditions,
    parse_step,
    parse_steps,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ActionStep",
    "BranchStep",
    "Condition",
    "DispatchOutcome",
    "EntityMutation",
    "SendEmailStep",
    "SendSmsStep",
    "StepResult",
    "WaitStep",
    "WorkflowEntity",
    "ensure_transition",
    "parse_conditions",
    "parse_step",
    "parse_steps",
]
