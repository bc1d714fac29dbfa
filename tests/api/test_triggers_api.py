"""Tests for the mutation trigger endpoint: enqueue, background dispatch, redelivery."""

from httpx import AsyncClient

JOB_COMPLETED = {
    "event_type": "UPDATE",
    "table_name": "jobs",
    "before": {"id": "j1", "status": "in_progress"},
    "after": {
        "id": "j1",
        "status": "completed",
        "client": {"name": "Ada", "phone": "+15550001111"},
    },
}


async def test_mutation_enqueues_and_dispatches(
    client: AsyncClient, api_senders, make_workflow
) -> None:
    sms_sender, _ = api_senders
    workflow = await make_workflow()

    response = await client.post("/api/v1/triggers", json=JOB_COMPLETED)

    assert response.status_code == 202
    body = response.json()
    assert body["created"] == 1
    assert len(body["enqueued"]) == 1
    execution = await client.get(f"/api/v1/executions/{body['enqueued'][0]}")
    assert execution.json()["workflow_id"] == workflow.id
    assert execution.json()["status"] == "completed"
    assert sms_sender.sent[0].to == "+15550001111"
    assert sms_sender.sent[0].body == "Hi Ada, thanks for choosing Our Company!"


async def test_redelivered_mutation_is_idempotent(
    client: AsyncClient, api_senders, make_workflow
) -> None:
    sms_sender, _ = api_senders
    await make_workflow()

    first = await client.post("/api/v1/triggers", json=JOB_COMPLETED)
    second = await client.post("/api/v1/triggers", json=JOB_COMPLETED)

    assert second.status_code == 202
    assert second.json()["created"] == 0
    assert second.json()["enqueued"] == first.json()["enqueued"]
    assert len(sms_sender.sent) == 1
    executions = await client.get("/api/v1/executions")
    assert len(executions.json()) == 1


async def test_event_id_identifies_the_mutation(
    client: AsyncClient, api_senders, make_workflow
) -> None:
    await make_workflow()

    first = await client.post("/api/v1/triggers", json={**JOB_COMPLETED, "event_id": "evt-1"})
    second = await client.post("/api/v1/triggers", json={**JOB_COMPLETED, "event_id": "evt-2"})

    assert first.json()["created"] == 1
    assert second.json()["created"] == 1
    assert first.json()["enqueued"] != second.json()["enqueued"]


async def test_unmatched_mutation_enqueues_nothing(
    client: AsyncClient, api_senders, make_workflow
) -> None:
    await make_workflow()
    unchanged = {**JOB_COMPLETED, "before": {"id": "j1", "status": "completed"}}

    response = await client.post("/api/v1/triggers", json=unchanged)

    assert response.status_code == 202
    assert response.json() == {"enqueued": [], "created": 0}


async def test_untracked_table_and_delete_are_ignored(
    client: AsyncClient, api_senders, make_workflow
) -> None:
    await make_workflow()

    untracked = await client.post(
        "/api/v1/triggers", json={**JOB_COMPLETED, "table_name": "audit_log"}
    )
    deleted = await client.post(
        "/api/v1/triggers",
        json={"event_type": "DELETE", "table_name": "jobs", "before": {"id": "j1"}},
    )

    assert untracked.json()["enqueued"] == []
    assert deleted.json()["enqueued"] == []


async def test_failed_dispatch_is_recorded(
    client: AsyncClient, api_senders, make_workflow
) -> None:
    sms_sender, _ = api_senders
    sms_sender.fail = True
    await make_workflow()

    response = await client.post("/api/v1/triggers", json=JOB_COMPLETED)

    execution = await client.get(f"/api/v1/executions/{response.json()['enqueued'][0]}")
    assert execution.json()["status"] == "failed"
    assert "sms send failed" in execution.json()["error_message"]


async def test_invalid_event_type_is_422(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/triggers", json={**JOB_COMPLETED, "event_type": "TRUNCATE"}
    )
    assert response.status_code == 422
