"""Domain layer: entities, lifecycle rules, and exceptions.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from app.domain.entities import (
    EntityMutation,
    StepResult,
    WorkflowEntity,
    ensure_transition,
)
from app.domain.exceptions import (
    AutomationException,
    IllegalTransitionException,
    MissingRecipientException,
    ResourceNotFoundException,
    SenderException,
    UnknownStepTypeException,
    ValidationException,
)

__all__ = [
    # Entities
    "EntityMutation",
    "StepResult",
    "WorkflowEntity",
    "ensure_transition",
    # Exceptions
    "AutomationException",
    "IllegalTransitionException",
    "MissingRecipientException",
    "ResourceNotFoundException",
    "SenderException",
    "UnknownStepTypeException",
    "ValidationException",
]
