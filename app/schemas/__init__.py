"""Pydantic request/response schemas for the API."""

from app.schemas.execution import (
    DispatchPendingResponse,
    ExecuteRequest,
    ExecuteResponse,
    ExecutionResponse,
    RetrySweepResponse,
)
from app.schemas.health import HealthResponse
from app.schemas.trigger import EntityMutationRequest, TriggerResponse
from app.schemas.webhook import WebhookAckResponse
from app.schemas.workflow import (
    WorkflowCreateRequest,
    WorkflowResponse,
    WorkflowUpdate,
)

__all__ = [
    "DispatchPendingResponse",
    "EntityMutationRequest",
    "ExecuteRequest",
    "ExecuteResponse",
    "ExecutionResponse",
    "HealthResponse",
    "RetrySweepResponse",
    "TriggerResponse",
    "WebhookAckResponse",
    "WorkflowCreateRequest",
    "WorkflowResponse",
    "WorkflowUpdate",
]
