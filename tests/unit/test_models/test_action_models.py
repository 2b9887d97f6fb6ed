"""Tests for automation action models and settings/activity models."""

import pytest
from pydantic import ValidationError

from cyra_kanban.models.actions import (
    ACTION_NAMES,
    AddTaskAction,
    FlatTaskPayload,
    MoveTaskAction,
    UpdateStatusAction,
    UpdateTaskAction,
    cyra_action_adapter,
)
from cyra_kanban.models.activity import AgentState, AgentStatus, Note
from cyra_kanban.models.user_settings import UserSettings


@pytest.mark.unit
def test_discriminator_selects_model():
    action = cyra_action_adapter.validate_python({"action": "move_task", "task_id": "t1", "to_column": "done"})
    assert isinstance(action, MoveTaskAction)
    assert action.to_column == "done"


@pytest.mark.unit
def test_add_task_requires_title():
    with pytest.raises(ValidationError):
        cyra_action_adapter.validate_python({"action": "add_task"})


@pytest.mark.unit
def test_add_task_accepts_recurrence_fields():
    action = cyra_action_adapter.validate_python({
        "action": "add_task",
        "title": "Weekly review",
        "event_date": "2025-03-03",
        "recurrence_rule": "FREQ=WEEKLY",
        "recurrence_count": 4,
    })
    assert isinstance(action, AddTaskAction)
    assert action.recurrence_count == 4


@pytest.mark.unit
def test_unknown_tag_is_rejected():
    with pytest.raises(ValidationError):
        cyra_action_adapter.validate_python({"action": "launch_rockets"})


@pytest.mark.unit
def test_update_status_state_enum():
    action = cyra_action_adapter.validate_python({"action": "update_status", "state": "thinking"})
    assert isinstance(action, UpdateStatusAction)
    assert action.state == AgentState.THINKING

    with pytest.raises(ValidationError):
        cyra_action_adapter.validate_python({"action": "update_status", "state": "sleeping"})


@pytest.mark.unit
def test_update_task_tracks_set_fields():
    action = cyra_action_adapter.validate_python({"action": "update_task", "task_id": "t1", "priority": "high"})
    assert isinstance(action, UpdateTaskAction)
    assert action.model_dump(exclude_unset=True, exclude={"action", "task_id"}) == {"priority": "high"}


@pytest.mark.unit
def test_action_names_cover_union():
    assert len(ACTION_NAMES) == 10
    assert "delete_task" in ACTION_NAMES


@pytest.mark.unit
def test_flat_payload_all_optional():
    payload = FlatTaskPayload.model_validate({"title": "Call Jane", "due_date": "2025-03-10", "extra": 1})
    assert payload.title == "Call Jane"
    assert payload.due_date == "2025-03-10"


@pytest.mark.unit
def test_note_and_status_defaults():
    note = Note(id="n1", user_id="u1", content="hello")
    status = AgentStatus(user_id="u1")

    assert note.read is False
    assert note.from_user.value == "victor"
    assert status.state == AgentState.IDLE


@pytest.mark.unit
def test_user_settings_public_hides_tokens():
    settings = UserSettings(
        user_id="u1",
        google_calendar_enabled=True,
        google_access_token="ya29.secret",
        google_refresh_token="1//secret",
    )
    public = settings.public()

    assert public["google_calendar_enabled"] is True
    assert "google_access_token" not in public
    assert "google_refresh_token" not in public
