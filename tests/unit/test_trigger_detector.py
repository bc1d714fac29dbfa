"""Tests for mutation classification and workflow matching."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from app.domain.entities.mutation import EntityMutation
from app.infrastructure.services.trigger_detector import TriggerDetector
from app.shared.enums import MutationType, TriggerType

STATUS_TRIGGERS = [
    TriggerType.STATUS_CHANGED_TO,
    TriggerType.STATUS_CHANGED_FROM,
    TriggerType.STATUS_TRANSITION,
]


def _update(before: dict, after: dict, table: str = "jobs") -> EntityMutation:
    return EntityMutation(MutationType.UPDATE, table, after=after, before=before)


def _workflow(**overrides) -> SimpleNamespace:
    values = {
        "id": "wf-1",
        "trigger_type": "status_changed_to",
        "from_status": None,
        "to_status": "completed",
        "trigger_conditions": [],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def detector() -> TriggerDetector:
    return TriggerDetector(AsyncMock())


def test_insert_is_entity_created(detector: TriggerDetector) -> None:
    mutation = EntityMutation(MutationType.INSERT, "clients", after={"id": "c1"})
    assert detector.classify(mutation) == [TriggerType.ENTITY_CREATED]


def test_status_change_yields_all_status_triggers(detector: TriggerDetector) -> None:
    mutation = _update({"id": "j1", "status": "scheduled"}, {"id": "j1", "status": "completed"})
    assert detector.classify(mutation) == STATUS_TRIGGERS


def test_status_change_is_case_insensitive(detector: TriggerDetector) -> None:
    mutation = _update({"id": "j1", "status": "Completed"}, {"id": "j1", "status": "completed"})
    assert detector.classify(mutation) == [TriggerType.ENTITY_UPDATED]


def test_other_field_change_is_entity_updated(detector: TriggerDetector) -> None:
    mutation = _update(
        {"id": "j1", "status": "scheduled", "notes": ""},
        {"id": "j1", "status": "scheduled", "notes": "Gate code 1234"},
    )
    assert detector.classify(mutation) == [TriggerType.ENTITY_UPDATED]


def test_custom_status_field() -> None:
    detector = TriggerDetector(AsyncMock(), status_field="stage")
    mutation = _update({"id": "j1", "stage": "lead"}, {"id": "j1", "stage": "won"})
    assert detector.classify(mutation) == STATUS_TRIGGERS


@pytest.mark.parametrize(
    "mutation",
    [
        EntityMutation(MutationType.INSERT, "vehicles", after={"id": "v1"}),
        EntityMutation(MutationType.DELETE, "jobs", before={"id": "j1"}),
        EntityMutation(MutationType.INSERT, "jobs", after={"title": "no id"}),
        EntityMutation(MutationType.UPDATE, "jobs", after={"id": "j1", "status": "x"}),
        EntityMutation(
            MutationType.INSERT, "jobs", after={"id": "j2", "created_by_automation": True}
        ),
    ],
    ids=["untracked", "delete", "no-id", "no-before", "automation-created"],
)
def test_fail_closed_cases(detector: TriggerDetector, mutation: EntityMutation) -> None:
    assert detector.classify(mutation) == []


def test_trigger_data_carries_status_pair(detector: TriggerDetector) -> None:
    mutation = _update({"id": "j1", "status": "scheduled"}, {"id": "j1", "status": "completed"})
    data = detector.build_trigger_data(mutation, STATUS_TRIGGERS)
    assert data["entity_type"] == "job"
    assert data["entity_id"] == "j1"
    assert data["record"]["status"] == "completed"
    assert data["previous"]["status"] == "scheduled"
    assert (data["old_status"], data["new_status"]) == ("scheduled", "completed")


def test_matches_applies_status_filters(detector: TriggerDetector) -> None:
    data = {"old_status": "scheduled", "new_status": "completed", "record": {}}
    assert detector.matches(_workflow(), TriggerType.STATUS_CHANGED_TO, data)
    assert not detector.matches(
        _workflow(to_status="invoiced"), TriggerType.STATUS_CHANGED_TO, data
    )
    assert detector.matches(
        _workflow(from_status="SCHEDULED"), TriggerType.STATUS_CHANGED_FROM, data
    )
    assert not detector.matches(
        _workflow(from_status="in_progress", to_status="completed"),
        TriggerType.STATUS_TRANSITION,
        data,
    )


def test_matches_applies_conditions(detector: TriggerDetector) -> None:
    data = {"new_status": "completed", "record": {"revenue": 90}}
    workflow = _workflow(
        trigger_conditions=[
            {"field": "record.revenue", "operator": "greater_than", "value": 100}
        ]
    )
    assert not detector.matches(workflow, TriggerType.STATUS_CHANGED_TO, data)


async def test_detect_returns_every_matching_workflow() -> None:
    repo = AsyncMock()
    repo.get_active_for.return_value = [
        _workflow(id="wf-to"),
        _workflow(id="wf-from", trigger_type="status_changed_from", from_status="scheduled"),
        _workflow(id="wf-other", to_status="cancelled"),
    ]
    detector = TriggerDetector(repo)
    mutation = EntityMutation(
        MutationType.UPDATE,
        "jobs",
        before={"id": "j1", "status": "scheduled"},
        after={"id": "j1", "status": "completed"},
        event_id="evt-1",
    )

    matches = await detector.detect(mutation)

    assert [m.workflow_id for m in matches] == ["wf-to", "wf-from"]
    assert all(m.event_key == "evt-1" for m in matches)
    repo.get_active_for.assert_awaited_once_with("job", STATUS_TRIGGERS)


async def test_detect_skips_repository_when_nothing_fires() -> None:
    repo = AsyncMock()
    detector = TriggerDetector(repo)
    await detector.detect(EntityMutation(MutationType.DELETE, "jobs", before={"id": "j1"}))
    repo.get_active_for.assert_not_awaited()


def test_event_key_is_stable_without_event_id() -> None:
    first = _update({"id": "j1", "status": "a"}, {"id": "j1", "status": "b"})
    second = _update({"status": "a", "id": "j1"}, {"status": "b", "id": "j1"})
    assert first.event_key() == second.event_key()
    assert first.event_key() != _update({"id": "j1", "status": "b"}, {"id": "j1", "status": "c"}).event_key()
