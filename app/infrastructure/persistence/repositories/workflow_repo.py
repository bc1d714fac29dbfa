"""AutomationWorkflow repository (workflow definition store)."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.persistence.models.workflow import AutomationWorkflow
from app.infrastructure.persistence.repositories.base import BaseRepository
from app.shared.enums import TriggerType


class WorkflowRepository(BaseRepository[AutomationWorkflow]):
    """Workflow definition repository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, AutomationWorkflow)

    async def get_active_for(
        self, entity_type: str, trigger_types: Iterable[TriggerType | str]
    ) -> list[AutomationWorkflow]:
        """Active workflows for an entity type listening on any of the trigger types."""
        types = [TriggerType(t).value for t in trigger_types]
        if not types:
            return []
        result = await self.db.execute(
            select(AutomationWorkflow)
            .where(
                AutomationWorkflow.entity_type == entity_type,
                AutomationWorkflow.trigger_type.in_(types),
                AutomationWorkflow.is_active.is_(True),
            )
            .order_by(AutomationWorkflow.created_at.asc(), AutomationWorkflow.id.asc())
        )
        return list(result.scalars().all())

    async def list_workflows(
        self,
        *,
        entity_type: str | None = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> list[AutomationWorkflow]:
        q = select(AutomationWorkflow)
        if entity_type:
            q = q.where(AutomationWorkflow.entity_type == entity_type)
        if not include_inactive:
            q = q.where(AutomationWorkflow.is_active.is_(True))
        q = q.order_by(AutomationWorkflow.created_at.asc()).offset(skip).limit(limit)
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def create_workflow(
        self,
        name: str,
        entity_type: str,
        trigger_type: TriggerType,
        steps: list[dict[str, Any]],
        *,
        description: str | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
        trigger_conditions: list[dict[str, Any]] | None = None,
        is_active: bool = True,
    ) -> AutomationWorkflow:
        """Create workflow; return created entity."""
        workflow = AutomationWorkflow(
            name=name,
            description=description,
            entity_type=entity_type,
            trigger_type=TriggerType(trigger_type).value,
            from_status=from_status,
            to_status=to_status,
            trigger_conditions=trigger_conditions or [],
            steps=steps,
            is_active=is_active,
        )
        return await self.create(workflow)
