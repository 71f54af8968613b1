"""
API request/response schemas.

Pydantic models for API validation and serialization.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from gtd_review.domain.models.review import (
    Review,
    ReviewInsights,
    ReviewSession,
    ReviewStatus,
    ReviewType,
    StepDefinition,
)
from gtd_review.services.coaching_service import CoachingPrompt
from gtd_review.services.task_action_dispatcher import TaskAction


# ============ STEP SCHEMAS ============


class StepListResponse(BaseModel):
    """Checklist of a review type."""

    review_type: ReviewType
    steps: List[StepDefinition]


class CompleteStepRequest(BaseModel):
    """Request to complete the current step."""

    data: Optional[Dict[str, Any]] = Field(
        default=None, description="Step data, e.g. {'processedItems': ['t1']}"
    )
    expected_version: Optional[int] = Field(
        default=None, description="Session version the client last saw"
    )


# ============ SESSION SCHEMAS ============


class TransitionRequest(BaseModel):
    """Body of pause/resume/abandon/previous (optional)."""

    expected_version: Optional[int] = None


class CompleteReviewRequest(BaseModel):
    """Request to complete a review on its final step."""

    notes: Optional[str] = Field(default=None, max_length=10000)
    expected_version: Optional[int] = None


class ReviewSessionResponse(BaseModel):
    """Review session details response."""

    id: str
    user_id: str
    type: ReviewType
    status: ReviewStatus
    current_step: int
    current_step_id: str
    total_steps: int
    step_ids: List[str]
    completed_steps: List[str]
    session_data: Dict[str, Dict[str, Any]]
    notes: Optional[str] = None
    insights: Optional[ReviewInsights] = None
    version: int
    started_at: datetime
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, session: ReviewSession) -> "ReviewSessionResponse":
        return cls(
            **session.model_dump(exclude={"created_at", "updated_at"}),
            current_step_id=session.current_step_id,
        )


class LiveSessionResponse(BaseModel):
    """The user's live session of a type, if any."""

    session: Optional[ReviewSessionResponse] = None


class SessionListResponse(BaseModel):
    """List of sessions response."""

    sessions: List[ReviewSessionResponse]
    total: int


# ============ TASK ACTION SCHEMAS ============


class TaskActionRequest(BaseModel):
    """Action on a task taken from a review step."""

    action: TaskAction
    project_id: Optional[str] = Field(
        default=None, description="Target project for reassign_project"
    )


# ============ COACHING / HISTORY SCHEMAS ============


class CoachingResponse(BaseModel):
    """Coaching prompts for the step a session is on."""

    session_id: str
    step_id: str
    prompts: List[CoachingPrompt]


class ReviewHistoryResponse(BaseModel):
    """Completed reviews, newest first."""

    reviews: List[Review]
    total: int
