"""Trigger API: entity mutations from the data platform.

Matching executions are enqueued and committed inside the request; dispatch
runs afterwards as a background task so the platform gets a fast ack.
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.v1.dependencies import (
    get_execution_dispatcher,
    get_trigger_detector_builder,
)
from app.core.limiter import limit_writes
from app.domain.entities import EntityMutation
from app.infrastructure.persistence.database import get_session_factory
from app.infrastructure.services import ExecutionDispatcher, TriggerDetector
from app.schemas.trigger import EntityMutationRequest, TriggerResponse


router = APIRouter()


async def dispatch_enqueued(dispatcher: ExecutionDispatcher, execution_ids: list[str]) -> None:
    """Run freshly enqueued executions concurrently; failures stay on their execution logs."""
    await dispatcher.dispatch_many(execution_ids)


@router.post("", response_model=TriggerResponse, status_code=202)
@limit_writes
async def receive_mutation(
    request: Request,
    body: EntityMutationRequest,
    background_tasks: BackgroundTasks,
    factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    build_detector: Annotated[
        Callable[[AsyncSession], TriggerDetector], Depends(get_trigger_detector_builder)
    ],
    dispatcher: Annotated[ExecutionDispatcher, Depends(get_execution_dispatcher)],
):
    """Classify a mutation, enqueue one execution per matching workflow.

    Redeliveries of the same mutation return the existing execution ids and
    dispatch nothing new.
    """
    mutation = EntityMutation(
        event_type=body.event_type,
        table_name=body.table_name,
        after=body.after,
        before=body.before,
        event_id=body.event_id,
    )
    async with factory() as session, session.begin():
        results = await build_detector(session).detect_and_enqueue(mutation)
    created = [r.execution_id for r in results if r.created]
    if created:
        background_tasks.add_task(dispatch_enqueued, dispatcher, created)
    return TriggerResponse(
        enqueued=[r.execution_id for r in results],
        created=len(created),
    )
