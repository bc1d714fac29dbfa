"""End-to-end dispatch tests: claim, run steps, record outcome, retry."""

import asyncio
from datetime import timedelta

import pytest

from app.application.dtos.automation import IngestStatus
from app.domain.exceptions import ResourceNotFoundException, ValidationException
from app.infrastructure.persistence.repositories.execution_log_repo import (
    ExecutionLogRepository,
)
from app.infrastructure.persistence.repositories.message_repo import (
    OutboundMessageRepository,
)
from app.infrastructure.services.action_runner import ActionRunner
from app.infrastructure.services.execution_dispatcher import ExecutionDispatcher, summarize
from app.infrastructure.services.retry_coordinator import RetryCoordinator
from app.infrastructure.services.sent_message_store import SentMessageStore
from app.infrastructure.services.webhook_deduplicator import WebhookDeduplicator
from app.shared.enums import ExecutionStatus, StepResultStatus
from app.shared.utils.datetime import utc_now

pytestmark = pytest.mark.requires_db

COMPANY = {"name": "Acme Plumbing", "phone": "+15559990000", "email": "hi@acme.test"}

TRIGGER_DATA = {
    "entity_type": "job",
    "entity_id": "j1",
    "record": {
        "id": "j1",
        "title": "Boiler service",
        "status": "completed",
        "client": {"name": "Ada", "phone": "+15550001111"},
    },
    "previous": {"id": "j1", "status": "in_progress"},
    "old_status": "in_progress",
    "new_status": "completed",
}


@pytest.fixture
def dispatcher(session_factory, sms_sender, email_sender, sleeper) -> ExecutionDispatcher:
    runner = ActionRunner(
        sms_sender,
        email_sender,
        sleeper=sleeper,
        sent_messages=SentMessageStore(session_factory),
    )
    return ExecutionDispatcher(session_factory, runner, company=COMPANY)


async def _enqueue(session_factory, workflow_id: str, event_key: str = "evt-1") -> str:
    async with session_factory() as session, session.begin():
        row, _ = await ExecutionLogRepository(session).enqueue(
            workflow_id, event_key, trigger_type="status_changed_to", trigger_data=TRIGGER_DATA
        )
    return row.id


async def _load(session_factory, execution_id: str):
    async with session_factory() as session:
        return await ExecutionLogRepository(session).get_by_id(execution_id)


async def test_job_completed_sends_thank_you_sms(
    session_factory, make_workflow, dispatcher, sms_sender
) -> None:
    workflow = await make_workflow()
    execution_id = await _enqueue(session_factory, workflow.id)

    outcome = await dispatcher.dispatch(execution_id)

    assert outcome.claimed
    assert outcome.status == ExecutionStatus.COMPLETED
    assert sms_sender.sent[0].to == "+15550001111"
    assert sms_sender.sent[0].body == "Hi Ada, thanks for choosing Acme Plumbing!"
    row = await _load(session_factory, execution_id)
    assert row.status == ExecutionStatus.COMPLETED.value
    assert row.step_results[0]["status"] == StepResultStatus.SUCCESS.value
    assert row.completed_at is not None


async def test_sent_sms_is_recorded_and_matched_by_delivery_receipt(
    session_factory, make_workflow, dispatcher
) -> None:
    workflow = await make_workflow()
    execution_id = await _enqueue(session_factory, workflow.id)
    await dispatcher.dispatch(execution_id)

    async with session_factory() as session:
        sent = await OutboundMessageRepository(session).get_by_external_id("sms-1")
    assert sent.execution_id == execution_id
    assert sent.step_id == "thank-you"
    assert sent.to_address == "+15550001111"
    assert sent.status == "sent"

    outcome = await WebhookDeduplicator(session_factory).ingest(
        {"record_type": "message", "direction": "outbound", "id": "sms-1", "status": "delivered"}
    )

    assert outcome.status == IngestStatus.STATUS_UPDATED
    async with session_factory() as session:
        sent = await OutboundMessageRepository(session).get_by_external_id("sms-1")
    assert sent.status == "delivered"


async def test_reminder_uses_derived_appointment_variables(
    session_factory, make_workflow, sms_sender, email_sender, sleeper
) -> None:
    workflow = await make_workflow(
        steps=[
            {
                "id": "reminder",
                "type": "send_sms",
                "message": "Hi {{client_first_name}}, see you {{appointment_date}} at {{appointment_time}}.",
            }
        ]
    )
    trigger_data = {
        **TRIGGER_DATA,
        "record": {
            **TRIGGER_DATA["record"],
            "schedule_start": "2026-03-10T18:30:00Z",
            "client": {"name": "Ada Lovelace", "phone": "+15550001111"},
        },
    }
    async with session_factory() as session, session.begin():
        row, _ = await ExecutionLogRepository(session).enqueue(
            workflow.id, "evt-reminder", trigger_type="status_changed_to", trigger_data=trigger_data
        )
    runner = ActionRunner(sms_sender, email_sender, sleeper=sleeper)
    dispatcher = ExecutionDispatcher(
        session_factory, runner, company=COMPANY, timezone="America/New_York"
    )

    outcome = await dispatcher.dispatch(row.id)

    assert outcome.status == ExecutionStatus.COMPLETED
    assert sms_sender.sent[0].body == "Hi Ada, see you Tue, Mar 10, 2026 at 2:30 PM."
    assert "unresolved" not in outcome.results[0].detail


async def test_second_dispatch_of_same_row_does_nothing(
    session_factory, make_workflow, dispatcher, sms_sender
) -> None:
    workflow = await make_workflow()
    execution_id = await _enqueue(session_factory, workflow.id)
    await dispatcher.dispatch(execution_id)

    again = await dispatcher.dispatch(execution_id)

    assert again.claimed is False
    assert again.status == ExecutionStatus.COMPLETED
    assert len(sms_sender.sent) == 1


async def test_steps_run_in_order_with_waits(
    session_factory, make_workflow, dispatcher, sms_sender, email_sender, sleeper
) -> None:
    workflow = await make_workflow(
        steps=[
            {"id": "sms", "type": "send_sms", "message": "Done: {{job.title}}"},
            {"id": "pause", "type": "wait", "duration_seconds": 3600},
            {
                "id": "mail",
                "type": "send_email",
                "subject": "How did we do?",
                "body": "Reply to {{company.email}}",
                "to": "ada@example.com",
            },
        ]
    )
    execution_id = await _enqueue(session_factory, workflow.id)

    outcome = await dispatcher.dispatch(execution_id)

    assert outcome.status == ExecutionStatus.COMPLETED
    assert [r.step_id for r in outcome.results] == ["sms", "pause", "mail"]
    assert sleeper.delays == [3600.0]
    assert sms_sender.sent[0].body == "Done: Boiler service"
    assert email_sender.sent[0].text == "Reply to hi@acme.test"


async def test_failing_step_stops_pipeline_and_marks_failed(
    session_factory, make_workflow, dispatcher, sms_sender
) -> None:
    workflow = await make_workflow(
        steps=[
            {"id": "first", "type": "send_sms", "message": "one"},
            {"id": "second", "type": "send_sms", "message": "two"},
        ]
    )
    execution_id = await _enqueue(session_factory, workflow.id)
    sms_sender.fail = True

    outcome = await dispatcher.dispatch(execution_id)

    assert outcome.status == ExecutionStatus.FAILED
    assert [r.step_id for r in outcome.results] == ["first"]
    row = await _load(session_factory, execution_id)
    assert row.status == ExecutionStatus.FAILED.value
    assert "first" in row.error_message
    assert len(row.details["previous_errors"]) == 1


async def test_continue_on_error_keeps_going(
    session_factory, make_workflow, dispatcher, sms_sender
) -> None:
    workflow = await make_workflow(
        steps=[
            {"id": "a", "type": "send_sms", "message": "a", "to": "{{client.mobile}}",
             "continue_on_error": True},
            {"id": "b", "type": "send_sms", "message": "b"},
        ]
    )
    execution_id = await _enqueue(session_factory, workflow.id)

    outcome = await dispatcher.dispatch(execution_id)

    assert outcome.status == ExecutionStatus.COMPLETED
    assert [r.status for r in outcome.results] == [
        StepResultStatus.FAILED,
        StepResultStatus.SUCCESS,
    ]
    assert [m.body for m in sms_sender.sent] == ["b"]


async def test_unknown_step_type_fails_execution(
    session_factory, make_workflow, dispatcher
) -> None:
    workflow = await make_workflow(steps=[{"id": "fax", "type": "send_fax"}])
    execution_id = await _enqueue(session_factory, workflow.id)

    outcome = await dispatcher.dispatch(execution_id)

    assert outcome.status == ExecutionStatus.FAILED
    assert outcome.results[0].detail["error_code"] == "UNKNOWN_STEP_TYPE"


async def test_inactive_workflow_fails_execution(
    session_factory, make_workflow, dispatcher, sms_sender
) -> None:
    workflow = await make_workflow(is_active=False)
    execution_id = await _enqueue(session_factory, workflow.id)

    outcome = await dispatcher.dispatch(execution_id)

    assert outcome.status == ExecutionStatus.FAILED
    assert "inactive" in outcome.error_message
    assert sms_sender.sent == []


async def test_unknown_execution_raises(dispatcher) -> None:
    with pytest.raises(ResourceNotFoundException):
        await dispatcher.dispatch("does-not-exist")


async def test_failure_then_retry_then_success(
    session_factory, make_workflow, dispatcher, sms_sender, sleeper
) -> None:
    workflow = await make_workflow()
    execution_id = await _enqueue(session_factory, workflow.id)
    sms_sender.fail = True
    first = await dispatcher.dispatch(execution_id)
    assert first.status == ExecutionStatus.FAILED

    coordinator = RetryCoordinator(session_factory, sleeper=sleeper)
    sweep = await coordinator.sweep(now=utc_now() + timedelta(minutes=10))
    assert sweep.retried == 1
    assert sleeper.delays == [5.0]

    sms_sender.fail = False
    outcomes = await dispatcher.dispatch_pending()
    summary = summarize(outcomes)
    assert (summary.dispatched, summary.completed, summary.failed) == (1, 1, 0)

    row = await _load(session_factory, execution_id)
    assert row.status == ExecutionStatus.COMPLETED.value
    assert row.attempts == 1
    assert row.details["retry_count"] == 1
    assert len(row.details["previous_errors"]) == 1
    assert len(sms_sender.sent) == 1


async def test_execute_runs_workflow_on_demand(
    session_factory, make_workflow, dispatcher, sms_sender
) -> None:
    workflow = await make_workflow(
        steps=[{"id": "ping", "type": "send_sms", "message": "Hi {{client.name}}"}]
    )

    outcome = await dispatcher.execute(
        workflow.id, context={"client": {"name": "Grace", "phone": "+15550002222"}}
    )

    assert outcome.status == ExecutionStatus.COMPLETED
    assert sms_sender.sent[0].to == "+15550002222"
    assert sms_sender.sent[0].body == "Hi Grace"


async def test_execute_with_existing_id_does_not_rerun(
    session_factory, make_workflow, dispatcher, sms_sender
) -> None:
    workflow = await make_workflow(
        steps=[{"id": "ping", "type": "send_sms", "message": "Hi", "to": "+15550002222"}]
    )
    first = await dispatcher.execute(workflow.id, execution_id="manual-1")
    second = await dispatcher.execute(workflow.id, execution_id="manual-1")

    assert first.execution_id == second.execution_id == "manual-1"
    assert second.claimed is False
    assert len(sms_sender.sent) == 1


async def test_execute_rejects_foreign_execution_id(
    session_factory, make_workflow, dispatcher
) -> None:
    owner = await make_workflow(name="Owner")
    other = await make_workflow(name="Other")
    await dispatcher.execute(owner.id, execution_id="manual-2")
    with pytest.raises(ValidationException):
        await dispatcher.execute(other.id, execution_id="manual-2")


async def test_execute_unknown_workflow_raises(dispatcher) -> None:
    with pytest.raises(ResourceNotFoundException):
        await dispatcher.execute("missing-workflow")


async def test_waiting_execution_does_not_block_other_pending_executions(
    session_factory, make_workflow, sms_sender, email_sender
) -> None:
    waiting = await make_workflow(
        name="Slow follow-up",
        steps=[{"id": "pause", "type": "wait", "duration_seconds": 3600}],
    )
    quick = await make_workflow(name="Thank you")
    waiting_id = await _enqueue(session_factory, waiting.id)
    quick_id = await _enqueue(session_factory, quick.id)

    async def sleep_until_sms_sent(seconds: float) -> None:
        while not sms_sender.sent:
            await asyncio.sleep(0.01)

    runner = ActionRunner(sms_sender, email_sender, sleeper=sleep_until_sms_sent)
    dispatcher = ExecutionDispatcher(session_factory, runner, company=COMPANY)

    outcomes = await asyncio.wait_for(dispatcher.dispatch_pending(), timeout=5)

    assert {o.execution_id: o.status for o in outcomes} == {
        waiting_id: ExecutionStatus.COMPLETED,
        quick_id: ExecutionStatus.COMPLETED,
    }
    assert len(sms_sender.sent) == 1


async def test_dispatch_many_skips_unknown_ids(
    session_factory, make_workflow, dispatcher, sms_sender
) -> None:
    workflow = await make_workflow()
    execution_id = await _enqueue(session_factory, workflow.id)

    outcomes = await dispatcher.dispatch_many(["does-not-exist", execution_id])

    assert [o.execution_id for o in outcomes] == [execution_id]
    assert len(sms_sender.sent) == 1
