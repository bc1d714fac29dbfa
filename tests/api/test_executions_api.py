"""Tests for execution endpoints: on-demand runs, history, pending sweep, retries."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from app.api.v1.dependencies import get_retry_coordinator
from app.infrastructure.persistence.repositories.execution_log_repo import (
    ExecutionLogRepository,
)
from app.infrastructure.services.retry_coordinator import RetryCoordinator
from app.main import app
from app.shared.utils.datetime import utc_now

PING = [{"id": "ping", "type": "send_sms", "message": "Hi {{client.name}}"}]


@pytest.fixture
def instant_retries(client: AsyncClient, session_factory, sleeper) -> RetryCoordinator:
    """Retry coordinator with no cool-down that records backoff instead of sleeping."""
    coordinator = RetryCoordinator(session_factory, cool_down_seconds=0, sleeper=sleeper)
    app.dependency_overrides[get_retry_coordinator] = lambda: coordinator
    return coordinator


async def _enqueue(session_factory, workflow_id: str, event_key: str) -> str:
    async with session_factory() as session, session.begin():
        row, _ = await ExecutionLogRepository(session).enqueue(
            workflow_id,
            event_key,
            trigger_data={
                "entity_type": "job",
                "record": {"id": event_key, "client": {"name": "Ada", "phone": "+1555"}},
            },
        )
    return row.id


async def test_execute_runs_workflow(client: AsyncClient, api_senders, make_workflow) -> None:
    sms_sender, _ = api_senders
    workflow = await make_workflow(steps=PING)

    response = await client.post(
        "/api/v1/executions/execute",
        json={
            "workflow_id": workflow.id,
            "context": {"client": {"name": "Grace", "phone": "+15550002222"}},
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["claimed"] is True
    assert body["results"][0]["step_id"] == "ping"
    assert body["results"][0]["status"] == "success"
    assert sms_sender.sent[0].body == "Hi Grace"

    stored = await client.get(f"/api/v1/executions/{body['execution_id']}")
    assert stored.status_code == 200
    assert stored.json()["event_key"] == f"manual:{body['execution_id']}"
    assert stored.json()["context"]["client"]["name"] == "Grace"


async def test_execute_failure_is_reported_in_body(
    client: AsyncClient, api_senders, make_workflow
) -> None:
    workflow = await make_workflow(steps=PING)

    response = await client.post(
        "/api/v1/executions/execute", json={"workflow_id": workflow.id}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "failed"
    assert body["results"][0]["detail"]["error_code"] == "MISSING_RECIPIENT"


async def test_execute_is_idempotent_on_execution_id(
    client: AsyncClient, api_senders, make_workflow
) -> None:
    sms_sender, _ = api_senders
    workflow = await make_workflow(steps=PING)
    payload = {
        "workflow_id": workflow.id,
        "execution_id": "run-42",
        "context": {"client": {"name": "Grace", "phone": "+15550002222"}},
    }

    first = await client.post("/api/v1/executions/execute", json=payload)
    second = await client.post("/api/v1/executions/execute", json=payload)

    assert first.json()["execution_id"] == "run-42"
    assert second.json()["claimed"] is False
    assert second.json()["status"] == "completed"
    assert len(sms_sender.sent) == 1


async def test_execute_unknown_workflow_is_404(client: AsyncClient, api_senders) -> None:
    response = await client.post(
        "/api/v1/executions/execute", json={"workflow_id": "missing"}
    )
    assert response.status_code == 404


async def test_get_unknown_execution_is_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/executions/missing")
    assert response.status_code == 404
    assert response.json()["details"]["resource_type"] == "execution"


async def test_dispatch_pending_and_filtered_history(
    client: AsyncClient, api_senders, make_workflow, session_factory
) -> None:
    sms_sender, _ = api_senders
    workflow = await make_workflow(steps=PING)
    other = await make_workflow(name="Other", steps=PING)
    await _enqueue(session_factory, workflow.id, "j1")
    await _enqueue(session_factory, workflow.id, "j2")
    await _enqueue(session_factory, other.id, "j3")

    pending = await client.get("/api/v1/executions", params={"status": "pending"})
    assert len(pending.json()) == 3

    response = await client.post("/api/v1/executions/dispatch-pending", params={"limit": 2})
    assert response.status_code == 200
    assert response.json() == {"dispatched": 2, "completed": 2, "failed": 0}

    rest = await client.post("/api/v1/executions/dispatch-pending")
    assert rest.json()["dispatched"] == 1
    assert len(sms_sender.sent) == 3

    completed = await client.get(
        "/api/v1/executions", params={"status": "completed", "workflow_id": other.id}
    )
    assert len(completed.json()) == 1
    assert completed.json()[0]["workflow_id"] == other.id


async def test_list_rejects_unknown_status(client: AsyncClient) -> None:
    response = await client.get("/api/v1/executions", params={"status": "exploded"})
    assert response.status_code == 422


async def test_retry_sweep_then_success(
    client: AsyncClient, api_senders, make_workflow, session_factory, instant_retries, sleeper
) -> None:
    sms_sender, _ = api_senders
    workflow = await make_workflow(steps=PING)
    execution_id = await _enqueue(session_factory, workflow.id, "j1")
    sms_sender.fail = True
    failed = await client.post("/api/v1/executions/dispatch-pending")
    assert failed.json()["failed"] == 1

    sweep = await client.post("/api/v1/retry-sweep")
    assert sweep.status_code == 200
    assert sweep.json() == {"retried": 1, "errors": 0, "exhausted": []}
    assert sleeper.delays == [5.0]

    sms_sender.fail = False
    await client.post("/api/v1/executions/dispatch-pending")
    row = (await client.get(f"/api/v1/executions/{execution_id}")).json()
    assert row["status"] == "completed"
    assert row["attempts"] == 1
    assert row["details"]["retry_count"] == 1


async def test_exhausted_executions_are_listed(
    client: AsyncClient, make_workflow, session_factory, instant_retries
) -> None:
    workflow = await make_workflow(steps=PING)
    execution_id = await _enqueue(session_factory, workflow.id, "j1")
    failed_at = utc_now() - timedelta(hours=1)
    for attempt in range(instant_retries.max_retries + 1):
        async with session_factory() as session, session.begin():
            repo = ExecutionLogRepository(session)
            await repo.claim(execution_id)
            await repo.mark_failed(execution_id, "provider down", [], now=failed_at)
            if attempt < instant_retries.max_retries:
                await repo.requeue(execution_id, attempt, {})

    sweep = await client.post("/api/v1/retry-sweep")
    assert sweep.json()["retried"] == 0
    assert sweep.json()["exhausted"] == [execution_id]

    exhausted = await client.get("/api/v1/executions/exhausted")
    assert exhausted.status_code == 200
    assert [e["id"] for e in exhausted.json()] == [execution_id]
    assert exhausted.json()[0]["attempts"] == instant_retries.max_retries
