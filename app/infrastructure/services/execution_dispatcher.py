"""Execution dispatcher: claim a pending execution, run its steps, record the outcome.

Each phase is its own short transaction on a fresh session:

1. claim (pending -> running, committed before any external call),
2. load the execution and its workflow,
3. run steps sequentially (no transaction open, so waits hold no locks),
4. record completed or failed.

A caller that loses the claim performs no side effects. Every failure
(missing or inactive workflow, unknown step type, missing recipient,
sender error, unexpected exception) ends up on the execution log.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.dtos.automation import DispatchSummary
from app.domain.entities.execution import DispatchOutcome, StepResult
from app.domain.exceptions import ResourceNotFoundException, ValidationException
from app.infrastructure.persistence.models.workflow import AutomationWorkflow, ExecutionLog
from app.infrastructure.persistence.repositories.execution_log_repo import (
    ExecutionLogRepository,
)
from app.infrastructure.persistence.repositories.workflow_repo import WorkflowRepository
from app.infrastructure.services.action_runner import ActionRunner
from app.infrastructure.services.template_variables import derive_variables, resolve_timezone
from app.shared.enums import ExecutionStatus
from app.shared.telemetry.logging import get_logger
from app.shared.telemetry.tracing import add_span_attributes, traced
from app.shared.utils.datetime import utc_now
from app.shared.utils.generators import generate_cuid

logger = get_logger(__name__)


def build_context(
    execution: ExecutionLog,
    company: dict[str, Any] | None = None,
    *,
    timezone: ZoneInfo | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Template/branch context for one execution.

    trigger_data keys at the top level, the record under its entity type
    (e.g. job), an embedded client record as client, company details, and
    the caller's overrides stored on the row. Derived flat variables
    (client_first_name, appointment_date, amount, ...) fill in any key not
    already present.
    """
    trigger_data = dict(execution.trigger_data or {})
    context: dict[str, Any] = dict(trigger_data)
    record = trigger_data.get("record")
    entity_type = trigger_data.get("entity_type")
    if isinstance(record, dict):
        if entity_type:
            context[entity_type] = record
        if isinstance(record.get("client"), dict) and "client" not in context:
            context["client"] = record["client"]
    context["company"] = dict(company or {})
    context["execution_id"] = execution.id
    context["workflow_id"] = execution.workflow_id
    context.update(execution.context or {})
    derived = derive_variables(
        entity_type,
        context.get(entity_type) if entity_type else record,
        client=context.get("client") if isinstance(context.get("client"), dict) else None,
        timezone=timezone or ZoneInfo("UTC"),
        now=now or utc_now(),
    )
    for key, value in derived.items():
        context.setdefault(key, value)
    return context


def summarize(outcomes: list[DispatchOutcome]) -> DispatchSummary:
    """Counts of claimed dispatches and how they ended."""
    summary = DispatchSummary()
    for outcome in outcomes:
        if not outcome.claimed:
            continue
        summary.dispatched += 1
        if outcome.status == ExecutionStatus.COMPLETED:
            summary.completed += 1
        elif outcome.status == ExecutionStatus.FAILED:
            summary.failed += 1
    return summary


class ExecutionDispatcher:
    """Runs pending execution logs through the action runner."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        action_runner: ActionRunner,
        *,
        company: dict[str, Any] | None = None,
        batch_size: int = 50,
        timezone: str = "UTC",
    ) -> None:
        self.session_factory = session_factory
        self.action_runner = action_runner
        self.company = company or {}
        self.batch_size = batch_size
        self.timezone = resolve_timezone(timezone)

    @traced("execution_dispatcher.dispatch")
    async def dispatch(self, execution_id: str) -> DispatchOutcome:
        """Claim and run one execution. Raises ResourceNotFoundException for unknown ids."""
        add_span_attributes(execution_id=execution_id)
        async with self.session_factory() as session, session.begin():
            claimed = await ExecutionLogRepository(session).claim(execution_id)

        async with self.session_factory() as session:
            execution = await ExecutionLogRepository(session).get_by_id(
                execution_id, fresh=True
            )
            if execution is None:
                raise ResourceNotFoundException("execution", execution_id)
            if not claimed:
                logger.info(
                    "Execution %s not claimed (status=%s); skipping",
                    execution_id,
                    execution.status,
                )
                return DispatchOutcome(
                    execution_id=execution_id,
                    status=ExecutionStatus(execution.status),
                    claimed=False,
                    error_message=execution.error_message,
                )
            workflow = await WorkflowRepository(session).get_by_id(execution.workflow_id)

        results: list[StepResult] = []
        error: str | None = None
        try:
            if workflow is None:
                error = f"Workflow {execution.workflow_id} not found"
            elif not workflow.is_active:
                error = f"Workflow {workflow.id} is inactive"
            else:
                results, error = await self._run_steps(workflow, execution)
        except Exception as e:
            logger.exception("Execution %s raised while running steps", execution_id)
            error = f"Unhandled error: {e}"

        return await self._record(execution_id, results, error)

    async def _run_steps(
        self, workflow: AutomationWorkflow, execution: ExecutionLog
    ) -> tuple[list[StepResult], str | None]:
        context = build_context(execution, self.company, timezone=self.timezone)
        results: list[StepResult] = []
        for index, raw_step in enumerate(workflow.steps or []):
            step_results = await self.action_runner.run(raw_step, context, index)
            results.extend(step_results)
            own = step_results[0]
            if own.aborts:
                return results, f"Step {own.step_id} ({own.step_type}) failed: {own.detail.get('error')}"
            if own.failed:
                logger.warning(
                    "Execution %s: step %s failed, continuing (continue_on_error)",
                    execution.id,
                    own.step_id,
                )
        return results, None

    async def _record(
        self, execution_id: str, results: list[StepResult], error: str | None
    ) -> DispatchOutcome:
        step_results = [r.to_dict() for r in results]
        async with self.session_factory() as session, session.begin():
            repo = ExecutionLogRepository(session)
            if error is None:
                recorded = await repo.mark_completed(execution_id, step_results)
                status = ExecutionStatus.COMPLETED
            else:
                recorded = await repo.mark_failed(execution_id, error, step_results)
                status = ExecutionStatus.FAILED
        if not recorded:
            logger.warning(
                "Execution %s was no longer running when recording %s",
                execution_id,
                status.value,
            )
        if error is None:
            logger.info("Execution %s completed (%d step results)", execution_id, len(results))
        else:
            logger.warning("Execution %s failed: %s", execution_id, error)
        add_span_attributes(status=status.value)
        return DispatchOutcome(
            execution_id=execution_id,
            status=status,
            results=results,
            error_message=error,
        )

    async def dispatch_many(self, execution_ids: list[str]) -> list[DispatchOutcome]:
        """Dispatch executions concurrently; a wait step only suspends its own execution.

        Errors are logged per id and left out of the returned outcomes.
        """
        results = await asyncio.gather(
            *(self.dispatch(execution_id) for execution_id in execution_ids),
            return_exceptions=True,
        )
        outcomes: list[DispatchOutcome] = []
        for execution_id, result in zip(execution_ids, results, strict=True):
            if isinstance(result, ResourceNotFoundException):
                logger.warning("Execution %s disappeared before dispatch", execution_id)
            elif isinstance(result, BaseException):
                logger.error(
                    "Dispatch of execution %s failed: %s", execution_id, result, exc_info=result
                )
            else:
                outcomes.append(result)
        return outcomes

    @traced("execution_dispatcher.dispatch_pending")
    async def dispatch_pending(self, limit: int | None = None) -> list[DispatchOutcome]:
        """Dispatch the oldest pending executions (at most limit or batch_size)."""
        async with self.session_factory() as session:
            ids = await ExecutionLogRepository(session).pending_ids(limit or self.batch_size)
        return await self.dispatch_many(ids)

    @traced("execution_dispatcher.execute")
    async def execute(
        self,
        workflow_id: str,
        context: dict[str, Any] | None = None,
        execution_id: str | None = None,
    ) -> DispatchOutcome:
        """Run a workflow on demand.

        With an execution_id that already exists, that row is dispatched (it
        must belong to workflow_id). Otherwise a pending row is created, keyed
        by the execution id, and dispatched.
        """
        async with self.session_factory() as session, session.begin():
            workflow = await WorkflowRepository(session).get_by_id(workflow_id)
            if workflow is None:
                raise ResourceNotFoundException("workflow", workflow_id)
            repo = ExecutionLogRepository(session)
            existing = await repo.get_by_id(execution_id) if execution_id else None
            if existing is not None:
                if existing.workflow_id != workflow_id:
                    raise ValidationException(
                        f"Execution {execution_id} belongs to another workflow",
                        field="execution_id",
                    )
                target_id = existing.id
            else:
                new_id = execution_id or generate_cuid()
                row, _ = await repo.enqueue(
                    workflow_id,
                    f"manual:{new_id}",
                    trigger_type=None,
                    trigger_data={"entity_type": workflow.entity_type},
                    context=context or {},
                    execution_id=new_id,
                )
                target_id = row.id
        return await self.dispatch(target_id)
