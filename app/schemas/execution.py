"""Execution log, dispatch and retry API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExecuteRequest(BaseModel):
    """Request body for POST /executions/execute."""

    workflow_id: str = Field(..., min_length=1)
    execution_id: str | None = Field(default=None, min_length=1, max_length=64)
    context: dict[str, Any] = Field(default_factory=dict)


class StepResultResponse(BaseModel):
    step_id: str
    step_type: str
    status: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ExecuteResponse(BaseModel):
    """Outcome of running one execution."""

    execution_id: str
    status: str
    claimed: bool = True
    error_message: str | None = None
    results: list[StepResultResponse] = Field(default_factory=list)


class ExecutionResponse(BaseModel):
    """Execution log row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow_id: str
    event_key: str
    trigger_type: str | None
    trigger_data: dict[str, Any]
    context: dict[str, Any]
    status: str
    attempts: int
    error_message: str | None
    step_results: list[dict[str, Any]]
    details: dict[str, Any]
    started_at: datetime | None
    completed_at: datetime | None


class DispatchPendingResponse(BaseModel):
    dispatched: int
    completed: int
    failed: int


class RetrySweepResponse(BaseModel):
    """Counts for one retry sweep; exhausted lists execution ids at the retry ceiling."""

    retried: int
    errors: int
    exhausted: list[str]
