"""Retry coordinator: requeue failed executions with bounded exponential backoff.

A sweep picks failed rows whose cool-down has elapsed and that have retries
left, waits base_delay * multiplier ** attempts for each (concurrently), then
moves each back to pending with a compare-and-set on (status, attempts) so
overlapping sweeps cannot requeue a row twice. Rows at the retry ceiling are
never requeued; they are reported instead. Sweeps are driven externally.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.dtos.automation import RetrySweepResult
from app.application.interfaces.services import Sleeper
from app.infrastructure.persistence.models.workflow import ExecutionLog
from app.infrastructure.persistence.repositories.execution_log_repo import (
    ExecutionLogRepository,
)
from app.shared.telemetry.logging import get_logger
from app.shared.telemetry.tracing import add_span_attributes, traced
from app.shared.utils.datetime import ensure_utc, utc_now

logger = get_logger(__name__)


class RetryCoordinator:
    """Finds retry-eligible failed executions and puts them back to pending."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_retries: int = 3,
        cool_down_seconds: float = 300.0,
        base_delay_seconds: float = 5.0,
        backoff_multiplier: float = 2.0,
        batch_size: int = 50,
        sleeper: Sleeper | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.cool_down = timedelta(seconds=cool_down_seconds)
        self.base_delay_seconds = base_delay_seconds
        self.backoff_multiplier = backoff_multiplier
        self.batch_size = batch_size
        self.sleeper: Sleeper = sleeper or asyncio.sleep

    def compute_backoff(self, attempts: int) -> float:
        """Delay before the next attempt; strictly increasing in attempts."""
        return self.base_delay_seconds * (self.backoff_multiplier ** attempts)

    @traced("retry_coordinator.sweep")
    async def sweep(self, now: datetime | None = None) -> RetrySweepResult:
        """One pass over eligible failed executions."""
        now = ensure_utc(now) or utc_now()
        cutoff = now - self.cool_down
        async with self.session_factory() as session:
            repo = ExecutionLogRepository(session)
            candidates = await repo.retry_candidates(
                cutoff, self.max_retries, self.batch_size
            )
            exhausted = await repo.exhausted(self.max_retries, self.batch_size)

        result = RetrySweepResult(exhausted=[row.id for row in exhausted])
        for row in exhausted:
            logger.warning(
                "Execution %s exhausted retries (attempts=%d, max=%d): %s",
                row.id,
                row.attempts,
                self.max_retries,
                row.error_message,
            )

        outcomes = await asyncio.gather(
            *(self._wait_and_requeue(row) for row in candidates),
            return_exceptions=True,
        )
        for row, outcome in zip(candidates, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                result.errors += 1
                logger.error(
                    "Failed to requeue execution %s: %s", row.id, outcome, exc_info=outcome
                )
            elif outcome:
                result.retried += 1
        add_span_attributes(
            candidates=len(candidates),
            retried=result.retried,
            errors=result.errors,
            exhausted=len(result.exhausted),
        )
        logger.info(
            "Retry sweep: %d candidates, %d requeued, %d errors, %d exhausted",
            len(candidates),
            result.retried,
            result.errors,
            len(result.exhausted),
        )
        return result

    async def _wait_and_requeue(self, row: ExecutionLog) -> bool:
        delay = self.compute_backoff(row.attempts)
        await self.sleeper(delay)
        retry_at = utc_now()
        details = dict(row.details or {})
        details["retry_count"] = row.attempts + 1
        details["retry_at"] = retry_at.isoformat()
        details["backoff_seconds"] = delay
        async with self.session_factory() as session, session.begin():
            requeued = await ExecutionLogRepository(session).requeue(
                row.id, row.attempts, details
            )
        if requeued:
            logger.info(
                "Execution %s requeued (attempt %d of %d, waited %.1fs)",
                row.id,
                row.attempts + 1,
                self.max_retries,
                delay,
            )
        else:
            logger.info("Execution %s already requeued by another sweep", row.id)
        return requeued

    async def exhausted_report(self, limit: int = 100) -> list[ExecutionLog]:
        """Failed executions at the retry ceiling, newest first."""
        async with self.session_factory() as session:
            return await ExecutionLogRepository(session).exhausted(self.max_retries, limit)
