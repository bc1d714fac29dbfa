"""Shared enumerations for the automation engine.

Cross-cutting enums used by domain, persistence and API layers (trigger
types, step types, execution and conversation status).
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class MutationType(_ValuesMixin, str, Enum):
    """Kind of entity mutation reported by the data platform."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class TriggerType(_ValuesMixin, str, Enum):
    """Semantic classification of an entity mutation."""

    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    STATUS_CHANGED_TO = "status_changed_to"
    STATUS_CHANGED_FROM = "status_changed_from"
    STATUS_TRANSITION = "status_transition"


class StepType(_ValuesMixin, str, Enum):
    """Workflow action step types."""

    SEND_SMS = "send_sms"
    SEND_EMAIL = "send_email"
    WAIT = "wait"
    BRANCH = "branch"


class ConditionOperator(_ValuesMixin, str, Enum):
    """Operators accepted in trigger conditions and branch predicates."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class ExecutionStatus(_ValuesMixin, str, Enum):
    """Execution log lifecycle status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepResultStatus(_ValuesMixin, str, Enum):
    """Outcome of a single step within a dispatch pass."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class ConversationStatus(_ValuesMixin, str, Enum):
    """SMS conversation status."""

    ACTIVE = "active"
    STOPPED = "stopped"
    ARCHIVED = "archived"


class MessageDirection(_ValuesMixin, str, Enum):
    """Direction of a provider message relative to the business."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"
