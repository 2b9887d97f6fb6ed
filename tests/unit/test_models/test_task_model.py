"""Tests for Task, Subtask and Attachment models."""

import pytest
from pydantic import ValidationError

from cyra_kanban.models.attachment import MAX_ATTACHMENT_BYTES, Attachment
from cyra_kanban.models.subtask import Subtask
from cyra_kanban.models.task import ColumnId, CreatedBy, Priority, SyncStatus, Task, TaskCreate


@pytest.mark.unit
def test_task_defaults():
    """Test a minimal task picks up board defaults."""
    task = Task(id="t1", user_id="u1", title="Write listing copy")

    assert task.column_id == ColumnId.INBOX
    assert task.priority == Priority.MEDIUM
    assert task.created_by == CreatedBy.VICTOR
    assert task.position == 1
    assert task.archived is False
    assert task.google_calendar_sync_status is None
    assert task.is_synced is False


@pytest.mark.unit
def test_task_rejects_blank_title():
    with pytest.raises(ValidationError):
        Task(id="t1", user_id="u1", title="   ")


@pytest.mark.unit
def test_task_rejects_unknown_column():
    with pytest.raises(ValidationError):
        Task(id="t1", user_id="u1", title="x", column_id="someday")


@pytest.mark.unit
def test_task_is_synced():
    task = Task(
        id="t1",
        user_id="u1",
        title="Call lender",
        event_date="2025-03-10",
        google_calendar_event_id="evt_1",
        google_calendar_sync_status="synced",
    )
    assert task.google_calendar_sync_status == SyncStatus.SYNCED
    assert task.is_synced is True


@pytest.mark.unit
def test_task_recurrence_count_must_be_positive():
    with pytest.raises(ValidationError):
        Task(id="t1", user_id="u1", title="x", recurrence_count=0)


@pytest.mark.unit
def test_task_create_recurrence_pattern():
    fields = TaskCreate(title="Standup", recurrence_pattern="weekly", recurrence_rule="FREQ=WEEKLY")
    dumped = fields.model_dump(mode="json", exclude_none=True)

    assert dumped == {"title": "Standup", "recurrence_pattern": "weekly", "recurrence_rule": "FREQ=WEEKLY"}


@pytest.mark.unit
def test_subtask_defaults():
    subtask = Subtask(id="s1", task_id="t1", user_id="u1", title="Order signs")
    assert subtask.completed is False
    assert subtask.position == 0


@pytest.mark.unit
def test_attachment_size_limit():
    Attachment(id="a1", task_id="t1", user_id="u1", file_name="a.pdf", file_path="p", file_size=MAX_ATTACHMENT_BYTES)
    with pytest.raises(ValidationError):
        Attachment(
            id="a1", task_id="t1", user_id="u1", file_name="a.pdf", file_path="p",
            file_size=MAX_ATTACHMENT_BYTES + 1,
        )
