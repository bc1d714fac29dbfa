"""Persistence models: ORM entities and mixins."""

from app.infrastructure.persistence.models.messaging import (
    Conversation,
    InboundMessage,
    OptOut,
    OutboundMessage,
)
from app.infrastructure.persistence.models.mixins import (
    CuidMixin,
    IdentifiedModel,
    TimestampMixin,
)
from app.infrastructure.persistence.models.workflow import (
    AutomationWorkflow,
    ExecutionLog,
)

__all__ = [
    "AutomationWorkflow",
    "Conversation",
    "CuidMixin",
    "ExecutionLog",
    "IdentifiedModel",
    "InboundMessage",
    "OptOut",
    "OutboundMessage",
    "TimestampMixin",
]
