"""Subtask model - checklist items owned by a task."""

from typing import Optional
from pydantic import BaseModel, Field


class Subtask(BaseModel):
    id: str = Field(..., description="Subtask ID")
    task_id: str = Field(..., description="Parent task ID (cascade delete)")
    user_id: str = Field(..., description="Owner ID")
    title: str = Field(..., min_length=1)
    completed: bool = False
    position: float = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
