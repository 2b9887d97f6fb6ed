"""Task model - a card on the kanban board."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ColumnId(str, Enum):
    """Workflow stages, left to right on the board."""
    INBOX = "inbox"
    WORKING = "working"
    BLOCKED = "blocked"
    REVIEW = "review"
    DONE = "done"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CreatedBy(str, Enum):
    VICTOR = "victor"
    CYRA = "cyra"


class SyncStatus(str, Enum):
    """Google Calendar sync health for a task."""
    UNSYNCED = "unsynced"
    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Task(BaseModel):
    """Task row as stored in the tasks table."""
    id: str = Field(..., description="Task ID (uuid)")
    user_id: str = Field(..., description="Owner ID; every query is scoped by it")
    title: str = Field(..., min_length=1, description="Task title")
    description: Optional[str] = None
    column_id: ColumnId = Field(default=ColumnId.INBOX, description="Board column")
    position: float = Field(default=1, description="Manual ordering within the column")
    priority: Priority = Field(default=Priority.MEDIUM)
    project: Optional[str] = Field(None, description="Free-text project/client association")
    client_id: Optional[str] = None
    product_id: Optional[str] = None
    created_by: CreatedBy = Field(default=CreatedBy.VICTOR)

    event_date: Optional[str] = Field(
        None,
        description="YYYY-MM-DD for all-day tasks, otherwise a UTC instant"
    )
    recurrence_rule: Optional[str] = Field(None, description="RFC-5545 RRULE body")
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[str] = None
    recurrence_count: Optional[int] = Field(None, ge=1)

    google_calendar_event_id: Optional[str] = None
    google_calendar_sync_status: Optional[SyncStatus] = None
    google_calendar_synced_at: Optional[str] = None
    google_calendar_error: Optional[str] = None

    completed_at: Optional[str] = None
    archived: bool = False
    archived_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value

    @property
    def is_synced(self) -> bool:
        return self.google_calendar_sync_status == SyncStatus.SYNCED


class TaskCreate(BaseModel):
    """Fields accepted when creating a task."""
    title: str = Field(..., description="Task title")
    description: Optional[str] = None
    column_id: Optional[str] = None
    priority: Optional[str] = None
    project: Optional[str] = None
    client_id: Optional[str] = None
    product_id: Optional[str] = None
    event_date: Optional[str] = None
    recurrence_rule: Optional[str] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[str] = None
    recurrence_count: Optional[int] = Field(None, ge=1)
