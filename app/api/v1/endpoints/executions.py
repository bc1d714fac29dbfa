"""Execution API: on-demand runs, pending sweep and operator visibility."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from app.api.v1.dependencies import (
    get_execution_dispatcher,
    get_execution_log_repo,
    get_retry_coordinator,
)
from app.core.limiter import limit_writes
from app.domain.entities import DispatchOutcome
from app.domain.exceptions import ResourceNotFoundException
from app.infrastructure.persistence.repositories.execution_log_repo import (
    ExecutionLogRepository,
)
from app.infrastructure.services import ExecutionDispatcher, RetryCoordinator
from app.infrastructure.services.execution_dispatcher import summarize
from app.schemas.execution import (
    DispatchPendingResponse,
    ExecuteRequest,
    ExecuteResponse,
    ExecutionResponse,
    StepResultResponse,
)
from app.shared.enums import ExecutionStatus

router = APIRouter()


def _execute_response(outcome: DispatchOutcome) -> ExecuteResponse:
    return ExecuteResponse(
        execution_id=outcome.execution_id,
        status=outcome.status.value,
        claimed=outcome.claimed,
        error_message=outcome.error_message,
        results=[StepResultResponse(**r.to_dict()) for r in outcome.results],
    )


@router.post("/execute", response_model=ExecuteResponse)
@limit_writes
async def execute_workflow(
    request: Request,
    body: ExecuteRequest,
    dispatcher: Annotated[ExecutionDispatcher, Depends(get_execution_dispatcher)],
):
    """Run a workflow now and return its step results.

    A failed run is still a 200: the status and error are in the body and the
    row is eligible for the retry sweep.
    """
    outcome = await dispatcher.execute(
        body.workflow_id, context=body.context, execution_id=body.execution_id
    )
    return _execute_response(outcome)


@router.post("/dispatch-pending", response_model=DispatchPendingResponse)
@limit_writes
async def dispatch_pending(
    request: Request,
    dispatcher: Annotated[ExecutionDispatcher, Depends(get_execution_dispatcher)],
    limit: int | None = Query(None, ge=1, le=1000),
):
    """Dispatch pending executions (scheduler entry point)."""
    summary = summarize(await dispatcher.dispatch_pending(limit))
    return DispatchPendingResponse(
        dispatched=summary.dispatched,
        completed=summary.completed,
        failed=summary.failed,
    )


@router.get("/exhausted", response_model=list[ExecutionResponse])
async def list_exhausted(
    coordinator: Annotated[RetryCoordinator, Depends(get_retry_coordinator)],
    limit: int = Query(100, ge=1, le=1000),
):
    """Failed executions that reached the retry ceiling and will not run again."""
    rows = await coordinator.exhausted_report(limit)
    return [ExecutionResponse.model_validate(r) for r in rows]


@router.get("/{execution_id}", response_model=ExecutionResponse)
async def get_execution(
    execution_id: str,
    execution_repo: Annotated[ExecutionLogRepository, Depends(get_execution_log_repo)],
):
    execution = await execution_repo.get_by_id(execution_id)
    if not execution:
        raise ResourceNotFoundException("execution", execution_id)
    return ExecutionResponse.model_validate(execution)


@router.get("", response_model=list[ExecutionResponse])
async def list_executions(
    execution_repo: Annotated[ExecutionLogRepository, Depends(get_execution_log_repo)],
    status: ExecutionStatus | None = None,
    workflow_id: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    """Execution history, newest first."""
    rows = await execution_repo.list_executions(
        status=status, workflow_id=workflow_id, skip=skip, limit=limit
    )
    return [ExecutionResponse.model_validate(r) for r in rows]
