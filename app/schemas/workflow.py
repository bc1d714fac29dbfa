"""Workflow definition API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.shared.enums import ConditionOperator, TriggerType


class TriggerCondition(BaseModel):
    """Single trigger condition: field path (e.g. record.total), operator, value."""

    field: str = Field(..., min_length=1, max_length=255)
    operator: ConditionOperator
    value: Any = None


class WorkflowCreateRequest(BaseModel):
    """Request body for creating a workflow."""

    name: str = Field(..., min_length=1, max_length=255)
    entity_type: str = Field(..., min_length=1, max_length=64)
    trigger_type: TriggerType
    steps: list[dict[str, Any]] = Field(..., min_length=1)
    description: str | None = None
    from_status: str | None = Field(default=None, max_length=64)
    to_status: str | None = Field(default=None, max_length=64)
    trigger_conditions: list[TriggerCondition] = Field(default_factory=list)
    is_active: bool = True


class WorkflowUpdate(BaseModel):
    """Request body for updating a workflow (partial)."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None
    from_status: str | None = Field(default=None, max_length=64)
    to_status: str | None = Field(default=None, max_length=64)
    trigger_conditions: list[TriggerCondition] | None = None
    steps: list[dict[str, Any]] | None = None


class WorkflowResponse(BaseModel):
    """Workflow response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    entity_type: str
    trigger_type: str
    from_status: str | None
    to_status: str | None
    trigger_conditions: list[dict[str, Any]]
    steps: list[dict[str, Any]]
    is_active: bool
    created_at: datetime
    updated_at: datetime
