"""
Automation actions issued by Cyra.

Each action is a tagged request body validated by ``cyra_action_adapter``.
Mutating actions leave an entry in the activity log.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from cyra_kanban.models.actions import (
    ACTION_NAMES,
    AddLogAction,
    AddNoteAction,
    AddTaskAction,
    CyraAction,
    DeleteTaskAction,
    FlatTaskPayload,
    GetNotesAction,
    GetTasksAction,
    MarkDoneAction,
    MoveTaskAction,
    UpdateStatusAction,
    UpdateTaskAction,
    cyra_action_adapter,
)
from cyra_kanban.models.task import ColumnId, CreatedBy, Priority
from cyra_kanban.services import activity_log, agent_status, notes, task_store
from cyra_kanban.services.calendar_sync import delete_task_with_side_effects, sync_after_write
from cyra_kanban.services.recurrence import resolve_task_id
from cyra_kanban.utils.errors import BadRequest
from cyra_kanban.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

CYRA = CreatedBy.CYRA.value

_RECURRENCE_KEYS = ("recurrence_rule", "recurrence_pattern", "recurrence_end_date", "recurrence_count")


def normalize_column(value: Optional[str]) -> str:
    if not value or not value.strip():
        return ColumnId.INBOX.value
    return value.strip().lower()


def normalize_priority(value: Optional[str]) -> str:
    """Lenient priority parsing; anything unrecognized is medium."""
    if not value:
        return Priority.MEDIUM.value
    candidate = value.strip().lower()
    if candidate in {p.value for p in Priority}:
        return candidate
    return Priority.MEDIUM.value


def parse_action(data: Dict[str, Any]) -> CyraAction:
    """Validate a request body into one of the action models."""
    name = data.get("action")
    if name not in ACTION_NAMES:
        raise BadRequest("Unknown action")
    try:
        return cyra_action_adapter.validate_python(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "body"
        raise BadRequest(f"Invalid {name} request: {field} {first.get('msg', 'is invalid')}".strip())


async def _add_task(owner_id: str, action: AddTaskAction) -> dict:
    fields = {
        "title": action.title,
        "description": action.description,
        "column_id": normalize_column(action.column),
        "priority": normalize_priority(action.priority),
        "project": action.project,
        "event_date": action.event_date,
    }
    fields.update({k: getattr(action, k) for k in _RECURRENCE_KEYS})
    task = await task_store.create_task(owner_id, fields, created_by=CYRA)
    task = await sync_after_write(owner_id, task)
    await activity_log.add_log(owner_id, f"Added task: {task['title']}", action.description, task["id"])
    return {"success": True, "task": task}


async def _move_task(owner_id: str, action: MoveTaskAction) -> dict:
    task_id = resolve_task_id(action.task_id)
    column = normalize_column(action.to_column)
    task = await task_store.move_task(task_id, owner_id, column)
    await activity_log.add_log(owner_id, f"Moved task to {column}", task_id=task_id)
    return {"success": True, "task": task}


async def _mark_done(owner_id: str, action: MarkDoneAction) -> dict:
    task_id = resolve_task_id(action.task_id)
    task = await task_store.mark_done(task_id, owner_id)
    await activity_log.add_log(owner_id, f"Completed task: {task['title']}", task_id=task_id)
    return {"success": True, "task": task}


async def _add_note(owner_id: str, action: AddNoteAction) -> dict:
    note = await notes.add_note(owner_id, action.content, from_user=CYRA)
    await activity_log.add_log(owner_id, "Added note", action.content)
    return {"success": True, "note": note}


async def _get_tasks(owner_id: str, action: GetTasksAction) -> dict:
    column = normalize_column(action.column) if action.column else None
    return {"success": True, "tasks": await task_store.list_tasks(owner_id, column)}


async def _get_notes(owner_id: str, action: GetNotesAction) -> dict:
    return {"success": True, "notes": await notes.list_notes(owner_id, action.unread_only)}


async def _update_status(owner_id: str, action: UpdateStatusAction) -> dict:
    status = await agent_status.update_status(owner_id, action.state.value, action.current_task)
    await activity_log.add_log(owner_id, f"Status changed to {action.state.value}", action.current_task)
    return {"success": True, "status": status}


async def _add_log(owner_id: str, action: AddLogAction) -> dict:
    log = await activity_log.add_log(owner_id, action.log_action, action.details, action.task_id)
    return {"success": True, "log": log}


async def _update_task(owner_id: str, action: UpdateTaskAction) -> dict:
    task_id = resolve_task_id(action.task_id)
    partial = action.model_dump(exclude_unset=True, exclude={"action", "task_id"})
    if "priority" in partial:
        partial["priority"] = normalize_priority(partial["priority"])
    task = await task_store.update_task(task_id, owner_id, partial)
    task = await sync_after_write(owner_id, task)
    await activity_log.add_log(owner_id, f"Updated task: {task['title']}", task_id=task_id)
    return {"success": True, "task": task}


async def _delete_task(owner_id: str, action: DeleteTaskAction) -> dict:
    task_id = resolve_task_id(action.task_id)
    task = await task_store.get_task(task_id, owner_id)
    await delete_task_with_side_effects(owner_id, task_id)
    # The row is gone, so the entry carries the title rather than a task reference
    await activity_log.add_log(owner_id, f"Deleted task: {task['title']}")
    return {"success": True}


_HANDLERS: Dict[str, Callable[[str, Any], Awaitable[dict]]] = {
    "add_task": _add_task,
    "move_task": _move_task,
    "mark_done": _mark_done,
    "add_note": _add_note,
    "get_tasks": _get_tasks,
    "get_notes": _get_notes,
    "update_status": _update_status,
    "add_log": _add_log,
    "update_task": _update_task,
    "delete_task": _delete_task,
}


async def handle_action(owner_id: str, action: CyraAction) -> dict:
    """Execute a validated action for the owner and return the response payload."""
    logger.info("Handling automation action", action=action.action, owner_id=mask_user_id(owner_id))
    return await _HANDLERS[action.action](owner_id, action)


async def create_flat_task(owner_id: str, payload: FlatTaskPayload) -> dict:
    """Task creation for the flat endpoint; returns the stored task."""
    title = (payload.title or "").strip()
    if not title:
        raise BadRequest("title is required")

    fields = {
        "title": title,
        "description": payload.description,
        "column_id": normalize_column(payload.column or payload.column_id),
        "priority": normalize_priority(payload.priority),
        "project": payload.project or payload.client_name,
        "event_date": payload.event_date or payload.due_date,
    }
    task = await task_store.create_task(owner_id, fields, created_by=CYRA)
    task = await sync_after_write(owner_id, task)
    details = f"via {payload.source}" if payload.source else None
    await activity_log.add_log(owner_id, f"Added task: {title}", details, task["id"])
    return task
