"""Execution log lifecycle and per-step results.

Lifecycle: pending -> running -> completed | failed, and failed -> pending
(retry only, while attempts < max_retries). completed and exhausted failed
are terminal.
"""

from dataclasses import dataclass, field
from typing import Any

from app.domain.exceptions import IllegalTransitionException
from app.shared.enums import ExecutionStatus, StepResultStatus

ALLOWED_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    ExecutionStatus.PENDING: frozenset({ExecutionStatus.RUNNING}),
    ExecutionStatus.RUNNING: frozenset(
        {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED}
    ),
    ExecutionStatus.FAILED: frozenset({ExecutionStatus.PENDING}),
    ExecutionStatus.COMPLETED: frozenset(),
}


def ensure_transition(
    from_status: ExecutionStatus | str, to_status: ExecutionStatus | str
) -> None:
    """Raise IllegalTransitionException unless from -> to is a lifecycle edge."""
    try:
        src = ExecutionStatus(from_status)
        dst = ExecutionStatus(to_status)
    except ValueError:
        raise IllegalTransitionException(str(from_status), str(to_status)) from None
    if dst not in ALLOWED_TRANSITIONS[src]:
        raise IllegalTransitionException(src.value, dst.value)


@dataclass
class StepResult:
    """Outcome of one step in a dispatch pass."""

    step_id: str
    step_type: str
    status: StepResultStatus
    detail: dict[str, Any] = field(default_factory=dict)
    continue_on_error: bool = False

    @property
    def failed(self) -> bool:
        return self.status == StepResultStatus.FAILED

    @property
    def aborts(self) -> bool:
        """A failed step without continue_on_error stops the pipeline."""
        return self.failed and not self.continue_on_error

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "step_type": self.step_type,
            "status": self.status.value,
            "detail": self.detail,
        }


@dataclass
class DispatchOutcome:
    """Result of one dispatch attempt for an execution log row.

    claimed is False when another dispatcher already owned the row; in that
    case status is the row's current status and no step ran.
    """

    execution_id: str
    status: ExecutionStatus
    claimed: bool = True
    results: list[StepResult] = field(default_factory=list)
    error_message: str | None = None
