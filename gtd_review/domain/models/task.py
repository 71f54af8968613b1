"""Task and project domain models.

Tasks and projects live in the task store, which the review workflow
treats as an external collaborator. These models describe the records the
store hands back and the filters/patches the workflow sends to it.

Status Flow (GTD):
    captured -> next_action | project | waiting_for | someday -> completed
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Where a task sits in the GTD workflow."""

    CAPTURED = "captured"
    NEXT_ACTION = "next_action"
    PROJECT = "project"
    WAITING_FOR = "waiting_for"
    SOMEDAY = "someday"
    COMPLETED = "completed"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETE = "complete"


class TaskContext(str, Enum):
    """Where or how a task can be done."""

    CALLS = "calls"
    COMPUTER = "computer"
    ERRANDS = "errands"
    HOME = "home"
    OFFICE = "office"
    ANYWHERE = "anywhere"


class TaskEnergyLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskDuration(str, Enum):
    FIVE_MIN = "5min"
    FIFTEEN_MIN = "15min"
    THIRTY_MIN = "30min"
    ONE_HOUR = "1hour"
    TWO_HOURS_PLUS = "2hour+"


class Task(BaseModel):
    """A captured item, next action, or any other GTD task record."""

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.CAPTURED
    project_id: Optional[str] = None
    context: Optional[TaskContext] = None
    energy_level: Optional[TaskEnergyLevel] = None
    estimated_duration: Optional[TaskDuration] = None
    due_date: Optional[date] = None
    priority: Optional[int] = Field(default=None, ge=1, le=5, description="1 is highest")
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    waiting_for: Optional[str] = Field(
        default=None, description="Who or what the task is blocked on"
    )
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class Project(BaseModel):
    """A multi-step outcome grouping tasks."""

    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    created_at: datetime
    updated_at: datetime


class TaskFilter(BaseModel):
    """Row-level filter understood by the task store.

    Unset fields do not constrain the query. Date bounds are inclusive on
    the lower end and exclusive on the upper end.
    """

    user_id: Optional[str] = None
    statuses: Optional[List[TaskStatus]] = None
    project_id: Optional[str] = None
    completed_after: Optional[datetime] = None
    completed_before: Optional[datetime] = None
    due_on_or_before: Optional[date] = None


class TaskPatch(BaseModel):
    """Partial update for a task. Only explicitly set fields are written."""

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    project_id: Optional[str] = None
    context: Optional[TaskContext] = None
    due_date: Optional[date] = None
    priority: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = None
    waiting_for: Optional[str] = None
    completed_at: Optional[datetime] = None

    def changes(self) -> dict:
        """Fields the caller set, including ones explicitly set to None."""
        return self.model_dump(exclude_unset=True)


class TaskSuggestion(BaseModel):
    """Output contract of a task ranking policy."""

    task: Task
    score: float
    reasons: List[str] = Field(default_factory=list)
