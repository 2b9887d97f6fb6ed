"""Activity models - notes and the agent status row."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from cyra_kanban.models.task import CreatedBy


class Note(BaseModel):
    """Message between Victor and Cyra."""
    id: str
    user_id: str
    content: str = Field(..., min_length=1)
    from_user: CreatedBy = CreatedBy.VICTOR
    read: bool = False
    created_at: Optional[str] = None


class AgentState(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    THINKING = "thinking"


class AgentStatus(BaseModel):
    """What the automation actor is doing right now."""
    user_id: str
    state: AgentState = AgentState.IDLE
    current_task: Optional[str] = None
    updated_at: Optional[str] = None
