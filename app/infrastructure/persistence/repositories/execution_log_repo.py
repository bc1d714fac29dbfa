"""ExecutionLog repository: idempotent enqueue and compare-and-set transitions.

Every status change is one conditional UPDATE ... WHERE status = <expected>;
callers learn from the return value whether they won. No row locks are held
across calls.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.entities.execution import ensure_transition
from app.domain.exceptions import ValidationException
from app.infrastructure.persistence.models.workflow import ExecutionLog
from app.infrastructure.persistence.repositories.base import BaseRepository
from app.shared.enums import ExecutionStatus
from app.shared.utils.datetime import utc_now


class ExecutionLogRepository(BaseRepository[ExecutionLog]):
    """Execution log repository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, ExecutionLog)

    async def enqueue(
        self,
        workflow_id: str,
        event_key: str,
        *,
        trigger_type: str | None = None,
        trigger_data: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
        execution_id: str | None = None,
    ) -> tuple[ExecutionLog, bool]:
        """Insert a pending row for (workflow, event) unless one exists.

        Returns (row, created). A second enqueue of the same key returns the
        existing row with created=False and changes nothing.
        """
        values: dict[str, Any] = {
            "workflow_id": workflow_id,
            "event_key": event_key,
            "trigger_type": trigger_type,
            "trigger_data": trigger_data or {},
            "context": context or {},
            "status": ExecutionStatus.PENDING.value,
            "attempts": 0,
            "step_results": [],
            "details": {},
        }
        if execution_id:
            values["id"] = execution_id
        try:
            new_id = await self.insert_ignoring_conflict(
                values, ("workflow_id", "event_key")
            )
        except IntegrityError as e:
            # Primary key taken by a row with another (workflow_id, event_key).
            raise ValidationException(
                f"Execution id {execution_id} is already used by another workflow or event",
                field="execution_id",
            ) from e
        row = await self.get_by_workflow_and_key(workflow_id, event_key)
        if row is None:
            raise ValidationException(
                f"Execution id {execution_id} is already used by another workflow or event",
                field="execution_id",
            )
        return row, new_id is not None

    async def get_by_workflow_and_key(
        self, workflow_id: str, event_key: str
    ) -> ExecutionLog | None:
        result = await self.db.execute(
            select(ExecutionLog)
            .where(
                ExecutionLog.workflow_id == workflow_id,
                ExecutionLog.event_key == event_key,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _transition(
        self,
        execution_id: str,
        from_status: ExecutionStatus,
        to_status: ExecutionStatus,
        *extra_where: Any,
        **values: Any,
    ) -> bool:
        ensure_transition(from_status, to_status)
        stmt = (
            update(ExecutionLog)
            .where(
                ExecutionLog.id == execution_id,
                ExecutionLog.status == from_status.value,
                *extra_where,
            )
            .values(status=to_status.value, updated_at=utc_now(), **values)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def claim(self, execution_id: str, *, now: datetime | None = None) -> bool:
        """pending -> running. True only for the single caller that won the row."""
        return await self._transition(
            execution_id,
            ExecutionStatus.PENDING,
            ExecutionStatus.RUNNING,
            started_at=now or utc_now(),
            completed_at=None,
        )

    async def mark_completed(
        self,
        execution_id: str,
        step_results: list[dict[str, Any]],
        *,
        now: datetime | None = None,
    ) -> bool:
        """running -> completed with per-step results."""
        return await self._transition(
            execution_id,
            ExecutionStatus.RUNNING,
            ExecutionStatus.COMPLETED,
            step_results=step_results,
            error_message=None,
            completed_at=now or utc_now(),
        )

    async def mark_failed(
        self,
        execution_id: str,
        error_message: str,
        step_results: list[dict[str, Any]],
        *,
        now: datetime | None = None,
    ) -> bool:
        """running -> failed; appends {error, failed_at, attempt} to details.previous_errors."""
        now = now or utc_now()
        row = await self.get_by_id(execution_id, fresh=True)
        if row is None:
            return False
        details = dict(row.details or {})
        previous = list(details.get("previous_errors") or [])
        previous.append(
            {
                "error": error_message,
                "failed_at": now.isoformat(),
                "attempt": row.attempts,
            }
        )
        details["previous_errors"] = previous
        return await self._transition(
            execution_id,
            ExecutionStatus.RUNNING,
            ExecutionStatus.FAILED,
            error_message=error_message,
            step_results=step_results,
            details=details,
            completed_at=now,
        )

    async def requeue(
        self,
        execution_id: str,
        expected_attempts: int,
        details: dict[str, Any],
    ) -> bool:
        """failed -> pending for a retry; conditional on (status, attempts).

        details is the row's details as read by the caller plus retry_count and
        retry_at; the attempts guard means it cannot have changed since.
        """
        return await self._transition(
            execution_id,
            ExecutionStatus.FAILED,
            ExecutionStatus.PENDING,
            ExecutionLog.attempts == expected_attempts,
            attempts=expected_attempts + 1,
            error_message=None,
            details=details,
        )

    async def list_executions(
        self,
        *,
        status: ExecutionStatus | None = None,
        workflow_id: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[ExecutionLog]:
        q = select(ExecutionLog)
        if status is not None:
            q = q.where(ExecutionLog.status == ExecutionStatus(status).value)
        if workflow_id:
            q = q.where(ExecutionLog.workflow_id == workflow_id)
        q = q.order_by(ExecutionLog.created_at.desc(), ExecutionLog.id).offset(skip).limit(limit)
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def pending_ids(self, limit: int) -> list[str]:
        """Oldest pending execution ids first."""
        result = await self.db.execute(
            select(ExecutionLog.id)
            .where(ExecutionLog.status == ExecutionStatus.PENDING.value)
            .order_by(ExecutionLog.created_at.asc(), ExecutionLog.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def retry_candidates(
        self, cutoff: datetime, max_retries: int, limit: int
    ) -> list[ExecutionLog]:
        """Failed rows that finished at or before cutoff and still have retries left."""
        result = await self.db.execute(
            select(ExecutionLog)
            .where(
                ExecutionLog.status == ExecutionStatus.FAILED.value,
                ExecutionLog.completed_at.is_not(None),
                ExecutionLog.completed_at <= cutoff,
                ExecutionLog.attempts < max_retries,
            )
            .order_by(ExecutionLog.completed_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def exhausted(self, max_retries: int, limit: int = 100) -> list[ExecutionLog]:
        """Failed rows that reached the retry ceiling (terminal)."""
        result = await self.db.execute(
            select(ExecutionLog)
            .where(
                ExecutionLog.status == ExecutionStatus.FAILED.value,
                ExecutionLog.attempts >= max_retries,
            )
            .order_by(ExecutionLog.completed_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
