"""Tests for workflow definition endpoints."""

import pytest
from httpx import AsyncClient

THANK_YOU = {
    "name": "Job completed thank-you",
    "entity_type": "job",
    "trigger_type": "status_changed_to",
    "to_status": "completed",
    "trigger_conditions": [
        {"field": "record.revenue", "operator": "greater_than", "value": 0}
    ],
    "steps": [
        {"id": "sms", "type": "send_sms", "message": "Thanks {{client.name}}!"},
        {"id": "pause", "type": "wait", "duration": {"value": 2, "unit": "days"}},
        {
            "id": "review",
            "type": "branch",
            "condition": {"field": "job.revenue", "operator": "greater_than", "value": 500},
            "then": [
                {"type": "send_email", "subject": "Review us", "body": "<p>Thanks!</p>"}
            ],
        },
    ],
}


async def _create(client: AsyncClient, **overrides) -> dict:
    response = await client.post("/api/v1/workflows", json={**THANK_YOU, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_workflow(client: AsyncClient) -> None:
    body = await _create(client)
    assert body["id"]
    assert body["is_active"] is True
    assert body["trigger_type"] == "status_changed_to"
    assert body["trigger_conditions"][0]["operator"] == "greater_than"
    assert len(body["steps"]) == 3


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"steps": [{"id": "x", "type": "send_fax"}]}, "steps"),
        ({"steps": [{"id": "x", "type": "send_sms"}]}, "message"),
        ({"entity_type": "spaceship"}, "entity_type"),
        ({"to_status": None}, "to_status"),
        (
            {"trigger_conditions": [{"field": "record.shoe_size", "operator": "equals"}]},
            "trigger_conditions",
        ),
    ],
)
async def test_create_rejects_invalid_definitions(
    client: AsyncClient, overrides: dict, field: str
) -> None:
    response = await client.post("/api/v1/workflows", json={**THANK_YOU, **overrides})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["details"]["field"] == field


async def test_create_rejects_malformed_body(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/workflows", json={**THANK_YOU, "trigger_type": "every_tuesday"}
    )
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_create_rejects_empty_steps(client: AsyncClient) -> None:
    response = await client.post("/api/v1/workflows", json={**THANK_YOU, "steps": []})
    assert response.status_code == 422


async def test_get_and_list_workflows(client: AsyncClient) -> None:
    created = await _create(client)
    await _create(client, name="Dormant", is_active=False)
    await _create(
        client,
        name="New client",
        entity_type="client",
        trigger_type="entity_created",
        to_status=None,
        trigger_conditions=[],
    )

    fetched = await client.get(f"/api/v1/workflows/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == THANK_YOU["name"]

    active = await client.get("/api/v1/workflows")
    assert {w["name"] for w in active.json()} == {THANK_YOU["name"], "New client"}

    jobs = await client.get(
        "/api/v1/workflows", params={"entity_type": "job", "include_inactive": True}
    )
    assert {w["name"] for w in jobs.json()} == {THANK_YOU["name"], "Dormant"}


async def test_get_unknown_workflow_is_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/workflows/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "RESOURCE_NOT_FOUND"


async def test_patch_deactivates_and_renames(client: AsyncClient) -> None:
    created = await _create(client)

    response = await client.patch(
        f"/api/v1/workflows/{created['id']}",
        json={"is_active": False, "name": "Retired thank-you"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_active"] is False
    assert body["name"] == "Retired thank-you"
    assert body["steps"] == created["steps"]


async def test_patch_revalidates_merged_definition(client: AsyncClient) -> None:
    created = await _create(client)

    response = await client.patch(
        f"/api/v1/workflows/{created['id']}",
        json={"steps": [{"id": "x", "type": "teleport"}]},
    )

    assert response.status_code == 400
    unchanged = await client.get(f"/api/v1/workflows/{created['id']}")
    assert unchanged.json()["steps"] == created["steps"]


async def test_patch_unknown_workflow_is_404(client: AsyncClient) -> None:
    response = await client.patch("/api/v1/workflows/nope", json={"name": "x"})
    assert response.status_code == 404
