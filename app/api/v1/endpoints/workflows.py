"""Workflow API: thin routes delegating to WorkflowRepository.

Definitions are checked with WorkflowEntity.validate() before they are stored,
so the engine only ever reads well-formed step lists.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from app.api.v1.dependencies import get_workflow_repo, get_workflow_repo_for_write
from app.core.limiter import limit_writes
from app.domain.entities import WorkflowEntity
from app.domain.exceptions import ResourceNotFoundException
from app.infrastructure.persistence.models.workflow import AutomationWorkflow
from app.infrastructure.persistence.repositories.workflow_repo import WorkflowRepository
from app.schemas.workflow import WorkflowCreateRequest, WorkflowResponse, WorkflowUpdate
from app.shared.enums import TriggerType

router = APIRouter()

_NOT_NULL_FIELDS = frozenset({"name", "is_active", "trigger_conditions", "steps"})


def _to_entity(workflow: AutomationWorkflow) -> WorkflowEntity:
    return WorkflowEntity(
        id=workflow.id,
        name=workflow.name,
        entity_type=workflow.entity_type,
        trigger_type=TriggerType(workflow.trigger_type),
        steps=workflow.steps,
        trigger_conditions=workflow.trigger_conditions,
        from_status=workflow.from_status,
        to_status=workflow.to_status,
        is_active=workflow.is_active,
        description=workflow.description,
    )


@router.post("", response_model=WorkflowResponse, status_code=201)
@limit_writes
async def create_workflow(
    request: Request,
    body: WorkflowCreateRequest,
    workflow_repo: Annotated[WorkflowRepository, Depends(get_workflow_repo_for_write)],
):
    """Create a workflow definition."""
    conditions = [c.model_dump(mode="json") for c in body.trigger_conditions]
    WorkflowEntity(
        id="",
        name=body.name,
        entity_type=body.entity_type,
        trigger_type=body.trigger_type,
        steps=body.steps,
        trigger_conditions=conditions,
        from_status=body.from_status,
        to_status=body.to_status,
        is_active=body.is_active,
        description=body.description,
    ).validate()
    workflow = await workflow_repo.create_workflow(
        name=body.name,
        entity_type=body.entity_type,
        trigger_type=body.trigger_type,
        steps=body.steps,
        description=body.description,
        from_status=body.from_status,
        to_status=body.to_status,
        trigger_conditions=conditions,
        is_active=body.is_active,
    )
    return WorkflowResponse.model_validate(workflow)


@router.get("", response_model=list[WorkflowResponse])
async def list_workflows(
    workflow_repo: Annotated[WorkflowRepository, Depends(get_workflow_repo)],
    entity_type: str | None = None,
    include_inactive: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    """List workflows, active only unless include_inactive is set."""
    workflows = await workflow_repo.list_workflows(
        entity_type=entity_type,
        include_inactive=include_inactive,
        skip=skip,
        limit=limit,
    )
    return [WorkflowResponse.model_validate(w) for w in workflows]


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    workflow_repo: Annotated[WorkflowRepository, Depends(get_workflow_repo)],
):
    workflow = await workflow_repo.get_by_id(workflow_id)
    if not workflow:
        raise ResourceNotFoundException("workflow", workflow_id)
    return WorkflowResponse.model_validate(workflow)


@router.patch("/{workflow_id}", response_model=WorkflowResponse)
@limit_writes
async def update_workflow(
    request: Request,
    workflow_id: str,
    body: WorkflowUpdate,
    workflow_repo: Annotated[WorkflowRepository, Depends(get_workflow_repo_for_write)],
):
    """Partially update a workflow; the merged definition is re-validated.

    Deactivation stops future triggers only; executions already queued still run.
    """
    workflow = await workflow_repo.get_by_id(workflow_id)
    if not workflow:
        raise ResourceNotFoundException("workflow", workflow_id)
    changes = body.model_dump(exclude_unset=True, mode="json")
    for key, value in changes.items():
        if value is None and key in _NOT_NULL_FIELDS:
            continue
        setattr(workflow, key, value)
    _to_entity(workflow).validate()
    updated = await workflow_repo.update(workflow)
    return WorkflowResponse.model_validate(updated)
