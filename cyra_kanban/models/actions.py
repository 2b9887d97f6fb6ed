"""Automation API request models, one per action tag."""

from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter

from cyra_kanban.models.activity import AgentState


class _RecurrenceFields(BaseModel):
    recurrence_rule: Optional[str] = None
    recurrence_pattern: Optional[str] = None
    recurrence_end_date: Optional[str] = None
    recurrence_count: Optional[int] = Field(None, ge=1)


class AddTaskAction(_RecurrenceFields):
    action: Literal["add_task"]
    title: str = Field(..., min_length=1)
    column: Optional[str] = None
    priority: Optional[str] = None
    description: Optional[str] = None
    project: Optional[str] = None
    event_date: Optional[str] = None


class MoveTaskAction(BaseModel):
    action: Literal["move_task"]
    task_id: str
    to_column: str


class MarkDoneAction(BaseModel):
    action: Literal["mark_done"]
    task_id: str


class AddNoteAction(BaseModel):
    action: Literal["add_note"]
    content: str = Field(..., min_length=1)


class GetTasksAction(BaseModel):
    action: Literal["get_tasks"]
    column: Optional[str] = None


class GetNotesAction(BaseModel):
    action: Literal["get_notes"]
    unread_only: bool = False


class UpdateStatusAction(BaseModel):
    action: Literal["update_status"]
    state: AgentState
    current_task: Optional[str] = None


class AddLogAction(BaseModel):
    action: Literal["add_log"]
    log_action: str = Field(..., min_length=1)
    details: Optional[str] = None
    task_id: Optional[str] = None


class UpdateTaskAction(_RecurrenceFields):
    action: Literal["update_task"]
    task_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    project: Optional[str] = None
    event_date: Optional[str] = None


class DeleteTaskAction(BaseModel):
    action: Literal["delete_task"]
    task_id: str


CyraAction = Annotated[
    Union[
        AddTaskAction,
        MoveTaskAction,
        MarkDoneAction,
        AddNoteAction,
        GetTasksAction,
        GetNotesAction,
        UpdateStatusAction,
        AddLogAction,
        UpdateTaskAction,
        DeleteTaskAction,
    ],
    Field(discriminator="action"),
]

cyra_action_adapter = TypeAdapter(CyraAction)

ACTION_NAMES = [
    "add_task",
    "move_task",
    "mark_done",
    "add_note",
    "get_tasks",
    "get_notes",
    "update_status",
    "add_log",
    "update_task",
    "delete_task",
]


class FlatTaskPayload(BaseModel):
    """Payload of the flat task-creation endpoint."""
    title: Optional[str] = None
    description: Optional[str] = None
    column: Optional[str] = None
    column_id: Optional[str] = None
    priority: Optional[str] = None
    event_date: Optional[str] = None
    due_date: Optional[str] = None
    client_name: Optional[str] = None
    project: Optional[str] = None
    source: Optional[str] = None
