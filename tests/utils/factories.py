"""Test data factories using Faker."""

from faker import Faker
from typing import Optional

fake = Faker()


def create_task_data(owner_id: str, **overrides) -> dict:
    """Create a stored-task row."""
    task = {
        "id": fake.uuid4(),
        "user_id": owner_id,
        "title": fake.sentence(nb_words=4).rstrip("."),
        "description": fake.text(max_nb_chars=80),
        "column_id": "inbox",
        "position": 1,
        "priority": "medium",
        "project": None,
        "created_by": "victor",
        "event_date": None,
        "recurrence_rule": None,
        "recurrence_pattern": None,
        "recurrence_end_date": None,
        "recurrence_count": None,
        "google_calendar_event_id": None,
        "google_calendar_sync_status": None,
        "google_calendar_synced_at": None,
        "google_calendar_error": None,
        "completed_at": None,
        "archived": False,
        "archived_at": None,
    }
    task.update(overrides)
    return task


def create_subtask_data(owner_id: str, task_id: str, position: float = 1, **overrides) -> dict:
    subtask = {
        "id": fake.uuid4(),
        "task_id": task_id,
        "user_id": owner_id,
        "title": fake.sentence(nb_words=3).rstrip("."),
        "completed": False,
        "position": position,
    }
    subtask.update(overrides)
    return subtask


def create_attachment_data(owner_id: str, task_id: str, file_name: Optional[str] = None) -> dict:
    file_name = file_name or fake.file_name(extension="pdf")
    return {
        "id": fake.uuid4(),
        "task_id": task_id,
        "user_id": owner_id,
        "file_name": file_name,
        "file_path": f"{owner_id}/{task_id}/1700000000000_{file_name}",
        "file_size": fake.random_int(min=1, max=4096),
        "mime_type": "application/pdf",
    }


def create_note_data(owner_id: str, **overrides) -> dict:
    note = {
        "id": fake.uuid4(),
        "user_id": owner_id,
        "content": fake.sentence(),
        "from_user": "victor",
        "read": False,
    }
    note.update(overrides)
    return note


def create_google_event(task_id: Optional[str] = None, **overrides) -> dict:
    """A Calendar API event resource, tagged with a task id when given."""
    event = {
        "id": f"evt_{fake.lexify('????????')}",
        "summary": fake.sentence(nb_words=3).rstrip("."),
        "start": {"dateTime": "2025-03-10T15:00:00Z"},
        "end": {"dateTime": "2025-03-10T16:00:00Z"},
        "updated": "2025-03-06T10:00:00Z",
        "status": "confirmed",
    }
    if task_id:
        event["extendedProperties"] = {
            "private": {"kanban_task_id": task_id, "kanban_source": "cyra-kanban"}
        }
    event.update(overrides)
    return event
