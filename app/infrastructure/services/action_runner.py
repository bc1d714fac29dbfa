"""Action runner: interprets one workflow step against an execution context.

Each step variant has its own interpreter. run() never raises: unknown step
types, missing recipients, sender errors and unexpected exceptions become a
failed StepResult carrying the step's continue_on_error flag, and the
dispatcher decides whether the pipeline continues.
"""

from __future__ import annotations

import asyncio
import html
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from app.application.dtos.messaging import EmailMessage, SmsMessage
from app.application.interfaces.services import (
    IEmailSender,
    ISentMessageStore,
    ISmsSender,
    Sleeper,
)
from app.domain.entities.execution import StepResult
from app.domain.entities.workflow import (
    ActionStep,
    BranchStep,
    SendEmailStep,
    SendSmsStep,
    WaitStep,
    parse_step,
)
from app.domain.exceptions import AutomationException, MissingRecipientException
from app.infrastructure.services.condition_evaluator import evaluate_conditions
from app.infrastructure.services.email_layout import EmailLayoutRenderer
from app.infrastructure.services.template_renderer import TemplateRenderer
from app.shared.enums import StepResultStatus
from app.shared.telemetry.logging import get_logger
from app.shared.telemetry.tracing import TracedOperation
from app.shared.utils.sanitization import html_to_text, looks_like_html

logger = get_logger(__name__)


def _step_label(raw: Any, index: int | None) -> tuple[str, str, bool]:
    """(id, type, continue_on_error) read from raw JSON, even for unknown types."""
    if not isinstance(raw, Mapping):
        return (f"step-{index}" if index is not None else "step", "unknown", False)
    step_id = raw.get("id") or (f"step-{index}" if index is not None else "step")
    return (str(step_id), str(raw.get("type")), bool(raw.get("continue_on_error", False)))


class ActionRunner:
    """Runs send_sms, send_email, wait and branch steps."""

    def __init__(
        self,
        sms_sender: ISmsSender,
        email_sender: IEmailSender,
        *,
        renderer: TemplateRenderer | None = None,
        email_layout: EmailLayoutRenderer | None = None,
        sleeper: Sleeper | None = None,
        sms_from_number: str | None = None,
        email_from_address: str | None = None,
        sent_messages: ISentMessageStore | None = None,
    ) -> None:
        self.sms_sender = sms_sender
        self.email_sender = email_sender
        self.renderer = renderer or TemplateRenderer()
        self.email_layout = email_layout or EmailLayoutRenderer()
        self.sleeper: Sleeper = sleeper or asyncio.sleep
        self.sms_from_number = sms_from_number
        self.email_from_address = email_from_address
        self.sent_messages = sent_messages
        self._interpreters: dict[
            type, Callable[[Any, Mapping[str, Any]], Awaitable[list[StepResult]]]
        ] = {
            SendSmsStep: self._run_send_sms,
            SendEmailStep: self._run_send_email,
            WaitStep: self._run_wait,
            BranchStep: self._run_branch,
        }

    async def run(
        self, raw_step: Any, context: Mapping[str, Any], index: int | None = None
    ) -> list[StepResult]:
        """Run one stored step. The step's own result is first; branch sub-results follow."""
        step_id, step_type, continue_on_error = _step_label(raw_step, index)
        try:
            step = parse_step(raw_step, index)
        except AutomationException as e:
            logger.warning("Step %s (%s) rejected: %s", step_id, step_type, e.message)
            return [
                StepResult(
                    step_id=step_id,
                    step_type=step_type,
                    status=StepResultStatus.FAILED,
                    detail={"error": e.message, "error_code": e.error_code},
                    continue_on_error=continue_on_error,
                )
            ]
        return await self.run_step(step, context)

    async def run_step(
        self, step: ActionStep, context: Mapping[str, Any]
    ) -> list[StepResult]:
        interpreter = self._interpreters[type(step)]
        try:
            async with TracedOperation(
                "action_runner.step", {"step.id": step.id, "step.type": step.type.value}
            ):
                return await interpreter(step, context)
        except AutomationException as e:
            logger.warning("Step %s (%s) failed: %s", step.id, step.type.value, e.message)
            detail = {"error": e.message, "error_code": e.error_code}
        except Exception as e:
            logger.exception("Step %s (%s) raised", step.id, step.type.value)
            detail = {"error": str(e) or e.__class__.__name__, "error_code": "STEP_ERROR"}
        return [self._result(step, StepResultStatus.FAILED, detail)]

    @staticmethod
    def _result(
        step: ActionStep, status: StepResultStatus, detail: dict[str, Any]
    ) -> StepResult:
        return StepResult(
            step_id=step.id,
            step_type=step.type.value,
            status=status,
            detail=detail,
            continue_on_error=step.continue_on_error,
        )

    def _recipient(self, step: SendSmsStep | SendEmailStep, context: Mapping[str, Any]) -> str:
        rendered = self.renderer.render(step.to, context)
        recipient = rendered.text.strip()
        if not rendered.complete or not recipient:
            raise MissingRecipientException(step.id, step.to)
        return recipient

    async def _run_send_sms(
        self, step: SendSmsStep, context: Mapping[str, Any]
    ) -> list[StepResult]:
        to = self._recipient(step, context)
        body = self.renderer.render(step.message, context)
        message = SmsMessage(
            to=to,
            body=body.text,
            from_number=self.sms_from_number,
            metadata={"step_id": step.id},
        )
        receipt = await self.sms_sender.send(message)
        detail: dict[str, Any] = {"to": to, "external_id": receipt.external_id}
        if self.sent_messages is not None:
            execution_id = context.get("execution_id")
            try:
                await self.sent_messages.record_sms(
                    message,
                    receipt,
                    execution_id=str(execution_id) if execution_id else None,
                    step_id=step.id,
                )
            except SQLAlchemyError:
                # A sent SMS never fails its step.
                logger.exception("Could not record sent SMS %s", receipt.external_id)
                detail["recorded"] = False
        if body.unresolved:
            detail["unresolved"] = body.unresolved
        return [self._result(step, StepResultStatus.SUCCESS, detail)]

    async def _run_send_email(
        self, step: SendEmailStep, context: Mapping[str, Any]
    ) -> list[StepResult]:
        to = self._recipient(step, context)
        subject = self.renderer.render(step.subject, context)
        if looks_like_html(step.body):
            body_text = self.renderer.render(step.body, context, escape=html.escape)
            text = html_to_text(body_text.text)
            body_html = body_text.text
        else:
            body_text = self.renderer.render(step.body, context)
            text = body_text.text
            body_html = html.escape(body_text.text)
        company = context.get("company") if isinstance(context.get("company"), Mapping) else {}
        receipt = await self.email_sender.send(
            EmailMessage(
                to=to,
                subject=subject.text,
                text=text,
                html=self.email_layout.render(subject.text, body_html, dict(company)),
                from_address=self.email_from_address,
                metadata={"step_id": step.id},
            )
        )
        detail: dict[str, Any] = {"to": to, "external_id": receipt.external_id}
        unresolved = list(dict.fromkeys(subject.unresolved + body_text.unresolved))
        if unresolved:
            detail["unresolved"] = unresolved
        return [self._result(step, StepResultStatus.SUCCESS, detail)]

    async def _run_wait(
        self, step: WaitStep, context: Mapping[str, Any]
    ) -> list[StepResult]:
        await self.sleeper(step.duration_seconds)
        return [
            self._result(
                step, StepResultStatus.SUCCESS, {"duration_seconds": step.duration_seconds}
            )
        ]

    async def _run_branch(
        self, step: BranchStep, context: Mapping[str, Any]
    ) -> list[StepResult]:
        taken = evaluate_conditions(step.conditions, context)
        sub_steps = step.then_steps if taken else step.else_steps
        sub_results: list[StepResult] = []
        error: str | None = None
        for sub in sub_steps:
            results = await self.run_step(sub, context)
            sub_results.extend(results)
            if results[0].aborts:
                error = f"step {sub.id} failed: {results[0].detail.get('error')}"
                break
        detail: dict[str, Any] = {
            "branch": "then" if taken else "else",
            "steps_run": len(sub_results),
        }
        if error:
            detail["error"] = error
            status = StepResultStatus.FAILED
        else:
            status = StepResultStatus.SUCCESS
        return [self._result(step, status, detail), *sub_results]
