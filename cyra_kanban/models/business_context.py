"""Business context - the goals, initiatives and projects Cyra plans around."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class Project(BaseModel):
    id: str = Field(..., description="Project ID, e.g. 'proj-3f2a...'")
    name: str = Field(..., min_length=1)
    client: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ACTIVE


class BusinessContext(BaseModel):
    """One row per owner; lists are replaced wholesale on PUT."""
    goals: List[str] = Field(default_factory=list)
    initiatives: List[str] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    updated_at: Optional[str] = None
