"""Persistence repositories. Re-exports for dependency injection."""

from app.infrastructure.persistence.repositories.base import BaseRepository
from app.infrastructure.persistence.repositories.execution_log_repo import (
    ExecutionLogRepository,
)
from app.infrastructure.persistence.repositories.message_repo import (
    ConversationRepository,
    InboundMessageRepository,
    OptOutRepository,
    OutboundMessageRepository,
)
from app.infrastructure.persistence.repositories.workflow_repo import WorkflowRepository

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "ExecutionLogRepository",
    "InboundMessageRepository",
    "OptOutRepository",
    "OutboundMessageRepository",
    "WorkflowRepository",
]
