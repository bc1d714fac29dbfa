"""Retry sweep endpoint, invoked by an external scheduler."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.api.v1.dependencies import get_retry_coordinator
from app.core.limiter import limit_writes
from app.infrastructure.services import RetryCoordinator
from app.schemas.execution import RetrySweepResponse

router = APIRouter()


@router.post("", response_model=RetrySweepResponse)
@limit_writes
async def retry_sweep(
    request: Request,
    coordinator: Annotated[RetryCoordinator, Depends(get_retry_coordinator)],
):
    """Requeue failed executions past their cool-down; report exhausted ones.

    Backoff delays are awaited inside the request, so schedulers should allow
    for the longest configured delay.
    """
    result = await coordinator.sweep()
    return RetrySweepResponse(
        retried=result.retried, errors=result.errors, exhausted=result.exhausted
    )
