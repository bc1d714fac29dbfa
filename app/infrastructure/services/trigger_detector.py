"""Trigger detection: classify entity mutations and match workflow definitions.

classify() turns one mutation into zero or more trigger types, detect()
loads the active workflows for those types and keeps the ones whose status
filters and conditions hold, and detect_and_enqueue() writes one pending
execution log per matching workflow (idempotent on (workflow, event)).
Ambiguous mutations fail closed: nothing is emitted and a warning is logged.
"""

from __future__ import annotations

from typing import Any

from app.application.dtos.automation import EnqueueResult, TriggerMatch
from app.domain.entities.mutation import EntityMutation
from app.infrastructure.persistence.models.workflow import AutomationWorkflow
from app.infrastructure.persistence.repositories.execution_log_repo import (
    ExecutionLogRepository,
)
from app.infrastructure.persistence.repositories.workflow_repo import WorkflowRepository
from app.infrastructure.services.condition_evaluator import evaluate_conditions
from app.shared.enums import MutationType, TriggerType
from app.shared.telemetry.logging import get_logger
from app.shared.telemetry.tracing import add_span_attributes, traced

logger = get_logger(__name__)

_STATUS_TRIGGERS = (
    TriggerType.STATUS_CHANGED_TO,
    TriggerType.STATUS_CHANGED_FROM,
    TriggerType.STATUS_TRANSITION,
)


def _norm_status(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip().lower()


class TriggerDetector:
    """Finds the workflows an entity mutation should run."""

    def __init__(
        self,
        workflow_repo: WorkflowRepository,
        execution_repo: ExecutionLogRepository | None = None,
        *,
        status_field: str = "status",
    ) -> None:
        self.workflow_repo = workflow_repo
        self.execution_repo = execution_repo
        self.status_field = status_field

    def classify(self, mutation: EntityMutation) -> list[TriggerType]:
        """Semantic trigger types for one mutation (empty when nothing should fire)."""
        entity_type = mutation.entity_type
        if entity_type is None:
            logger.warning(
                "Ignoring mutation on untracked table %r", mutation.table_name
            )
            return []
        if mutation.event_type == MutationType.DELETE:
            return []
        if mutation.entity_id is None:
            logger.warning(
                "Ignoring %s on %s: record has no id",
                mutation.event_type.value,
                mutation.table_name,
            )
            return []
        if mutation.event_type == MutationType.INSERT:
            if not mutation.after:
                logger.warning(
                    "Ignoring insert on %s: no after snapshot", mutation.table_name
                )
                return []
            if mutation.after.get("created_by_automation") is True:
                logger.info(
                    "Skipping entity_created for %s %s: record was created by an automation",
                    entity_type,
                    mutation.entity_id,
                )
                return []
            return [TriggerType.ENTITY_CREATED]
        if mutation.before is None or not mutation.after:
            logger.warning(
                "Ignoring update on %s %s: before/after snapshot missing",
                entity_type,
                mutation.entity_id,
            )
            return []
        if self._status_changed(mutation):
            return list(_STATUS_TRIGGERS)
        return [TriggerType.ENTITY_UPDATED]

    def _status_changed(self, mutation: EntityMutation) -> bool:
        after = mutation.after or {}
        before = mutation.before or {}
        if self.status_field not in after:
            return False
        return _norm_status(after.get(self.status_field)) != _norm_status(
            before.get(self.status_field)
        )

    def build_trigger_data(
        self, mutation: EntityMutation, trigger_types: list[TriggerType]
    ) -> dict[str, Any]:
        """Normalized data a workflow sees: entity id/type, record, previous, status pair."""
        data: dict[str, Any] = {
            "entity_type": mutation.entity_type,
            "entity_id": mutation.entity_id,
            "table_name": mutation.table_name,
            "mutation_type": mutation.event_type.value,
            "record": dict(mutation.after or {}),
            "previous": dict(mutation.before or {}),
        }
        if any(t in _STATUS_TRIGGERS for t in trigger_types):
            data["old_status"] = (mutation.before or {}).get(self.status_field)
            data["new_status"] = (mutation.after or {}).get(self.status_field)
        return data

    def matches(
        self,
        workflow: AutomationWorkflow,
        trigger_type: TriggerType,
        trigger_data: dict[str, Any],
    ) -> bool:
        """Status filters for the trigger type, then the conjunctive conditions."""
        old = _norm_status(trigger_data.get("old_status"))
        new = _norm_status(trigger_data.get("new_status"))
        wanted_from = _norm_status(workflow.from_status)
        wanted_to = _norm_status(workflow.to_status)
        if trigger_type == TriggerType.STATUS_CHANGED_TO and wanted_to != new:
            return False
        if trigger_type == TriggerType.STATUS_CHANGED_FROM and wanted_from != old:
            return False
        if trigger_type == TriggerType.STATUS_TRANSITION and (
            wanted_from != old or wanted_to != new
        ):
            return False
        return evaluate_conditions(workflow.trigger_conditions, trigger_data)

    @traced("trigger_detector.detect")
    async def detect(self, mutation: EntityMutation) -> list[TriggerMatch]:
        """All matching workflows for the mutation; each fires independently."""
        trigger_types = self.classify(mutation)
        if not trigger_types:
            return []
        entity_type = mutation.entity_type or ""
        trigger_data = self.build_trigger_data(mutation, trigger_types)
        event_key = mutation.event_key()
        workflows = await self.workflow_repo.get_active_for(entity_type, trigger_types)
        matches: list[TriggerMatch] = []
        for workflow in workflows:
            trigger_type = TriggerType(workflow.trigger_type)
            if not self.matches(workflow, trigger_type, trigger_data):
                continue
            matches.append(
                TriggerMatch(
                    workflow_id=workflow.id,
                    trigger_type=trigger_type,
                    trigger_data=trigger_data,
                    event_key=event_key,
                )
            )
        add_span_attributes(
            entity_type=entity_type,
            workflows_considered=len(workflows),
            workflows_matched=len(matches),
        )
        logger.info(
            "Mutation %s on %s %s matched %d of %d workflows",
            mutation.event_type.value,
            entity_type,
            mutation.entity_id,
            len(matches),
            len(workflows),
        )
        return matches

    async def detect_and_enqueue(self, mutation: EntityMutation) -> list[EnqueueResult]:
        """detect() then one idempotent pending execution log per match.

        The caller owns the transaction (commit after this returns).
        """
        if self.execution_repo is None:
            raise RuntimeError("TriggerDetector needs an execution repository to enqueue")
        results: list[EnqueueResult] = []
        for match in await self.detect(mutation):
            row, created = await self.execution_repo.enqueue(
                match.workflow_id,
                match.event_key,
                trigger_type=match.trigger_type.value,
                trigger_data=match.trigger_data,
            )
            if not created:
                logger.info(
                    "Execution for workflow %s and event %s already exists (%s)",
                    match.workflow_id,
                    match.event_key,
                    row.id,
                )
            results.append(
                EnqueueResult(
                    execution_id=row.id, workflow_id=match.workflow_id, created=created
                )
            )
        return results
