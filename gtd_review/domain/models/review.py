"""Review domain models for the guided daily/weekly review workflow.

Core Models:
    - ReviewSession: Persisted state of one in-flight or finished review
    - ReviewInsights: Productivity metrics attached when a review completes
    - ReviewWorldView: Read-only snapshot a review step renders from
    - Review / ReviewMetrics: History record and per-day counters written on completion

Session Lifecycle:
    1. Created by start() with current_step=0, status=active
    2. complete_step() merges step data and advances current_step
    3. pause()/resume() alternate between active and paused
    4. complete() or abandon() end the session (both terminal)

Status Transitions (enforced through ALLOWED_TRANSITIONS):
    - active -> paused | completed | abandoned
    - paused -> active | abandoned
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from gtd_review.domain.models.task import Project, Task, TaskSuggestion


class ReviewType(str, Enum):
    """Kind of review checklist."""

    DAILY = "daily"
    WEEKLY = "weekly"


class ReviewStatus(str, Enum):
    """Lifecycle status of a review session."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


ALLOWED_TRANSITIONS: Dict[ReviewStatus, FrozenSet[ReviewStatus]] = {
    ReviewStatus.ACTIVE: frozenset(
        {ReviewStatus.PAUSED, ReviewStatus.COMPLETED, ReviewStatus.ABANDONED}
    ),
    ReviewStatus.PAUSED: frozenset({ReviewStatus.ACTIVE, ReviewStatus.ABANDONED}),
    ReviewStatus.COMPLETED: frozenset(),
    ReviewStatus.ABANDONED: frozenset(),
}

LIVE_STATUSES: FrozenSet[ReviewStatus] = frozenset(
    {ReviewStatus.ACTIVE, ReviewStatus.PAUSED}
)


def can_transition(current: ReviewStatus, target: ReviewStatus) -> bool:
    """Whether the state machine allows moving from current to target."""
    return target in ALLOWED_TRANSITIONS[current]


class StepDefinition(BaseModel):
    """One entry of a review checklist."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    required: bool = True
    estimated_duration: str = Field(description="Human-readable estimate, e.g. '5 min'")


class ReviewInsights(BaseModel):
    """Productivity metrics over a review window."""

    tasks_completed: int = 0
    projects_progressed: int = 0
    avg_tasks_per_day: float = 0.0
    top_contexts: List[str] = Field(default_factory=list)
    streak_days: int = 0


class ReviewSession(BaseModel):
    """Persisted state of one review.

    Attributes:
        - step_ids: Snapshot of the checklist at creation; validation of an
          in-flight session always uses this, never the live catalog
        - completed_steps: Append-only, duplicate-free, in completion order
        - session_data: step id -> step-owned data, merged shallowly per step
        - version: Bumped on every persisted transition (optimistic locking)
    """

    id: str
    user_id: str
    type: ReviewType
    status: ReviewStatus = ReviewStatus.ACTIVE
    current_step: int = Field(default=0, ge=0)
    total_steps: int = Field(ge=1)
    step_ids: List[str]
    completed_steps: List[str] = Field(default_factory=list)
    session_data: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    notes: Optional[str] = None
    insights: Optional[ReviewInsights] = None
    version: int = 1
    started_at: datetime
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    @property
    def current_step_id(self) -> str:
        return self.step_ids[self.current_step]

    @property
    def is_last_step(self) -> bool:
        return self.current_step == self.total_steps - 1


class ReviewWorldView(BaseModel):
    """Snapshot of the task store a review step renders from.

    Rebuilt on every request; two snapshots taken in the same session are
    not guaranteed to agree with each other.
    """

    review_type: ReviewType
    inbox_items: List[Task] = Field(default_factory=list)
    all_projects: List[Project] = Field(default_factory=list)
    someday_items: List[Task] = Field(default_factory=list)
    completed_this_week: List[Task] = Field(
        default_factory=list,
        description="Completed items of the review window (today for daily reviews)",
    )
    insights: ReviewInsights = Field(default_factory=ReviewInsights)

    # Daily review extras
    todays_tasks: List[Task] = Field(default_factory=list)
    overdue_tasks: List[Task] = Field(default_factory=list)
    waiting_for_items: List[Task] = Field(default_factory=list)

    suggestions: List[TaskSuggestion] = Field(default_factory=list)
    generated_at: datetime


class ReviewProgress(BaseModel):
    """Progress snapshot stored with a completed review."""

    current_step: int
    total_steps: int
    completed_steps: List[str]
    started_at: datetime


class Review(BaseModel):
    """History record written when a review session completes."""

    id: str
    user_id: str
    type: ReviewType
    session_id: str
    completed_at: datetime
    notes: Optional[str] = None
    duration_minutes: int = 0
    tasks_reviewed: int = 0
    projects_reviewed: int = 0
    progress: ReviewProgress


class ReviewMetrics(BaseModel):
    """Per-user, per-day review counters."""

    user_id: str
    date: date
    inbox_items_processed: int = 0
    daily_reviews_completed: int = 0
    weekly_reviews_completed: int = 0


class ReviewAnalytics(BaseModel):
    """Review habit summary for a user."""

    user_id: str
    streak_days: int = Field(description="Consecutive days ending today with a daily review")
    next_milestone: int
    completion_rate_7d: int = Field(description="Percent of the last 7 days with a daily review")
    completion_rate_30d: int
    due_reviews: List[ReviewType] = Field(
        default_factory=list,
        description="Scheduled for today and not yet completed this period",
    )
    recent_reviews: List[Review] = Field(default_factory=list)
