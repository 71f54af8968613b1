"""
Review API routes.

Endpoints for starting reviews, moving through their steps, and reading
the world view, coaching prompts, history and analytics.
"""

from typing import Optional

from fastapi import APIRouter, Query

from gtd_review.api.dependencies import (
    AnalyticsServiceDep,
    CoachingServiceDep,
    ReviewRepoDep,
    UserIdDep,
    WorkflowServiceDep,
)
from gtd_review.api.schemas import (
    CoachingResponse,
    CompleteReviewRequest,
    CompleteStepRequest,
    LiveSessionResponse,
    ReviewHistoryResponse,
    ReviewSessionResponse,
    SessionListResponse,
    StepListResponse,
    TransitionRequest,
)
from gtd_review.core.exceptions import SessionNotFoundError
from gtd_review.domain.models.review import (
    ReviewAnalytics,
    ReviewSession,
    ReviewType,
    ReviewWorldView,
)
from gtd_review.services.coaching_service import COMPLETION_KEY
from gtd_review.services.review_workflow_service import ReviewWorkflowService
from gtd_review.services.step_catalog import steps_for

router = APIRouter(prefix="/reviews", tags=["reviews"])


async def owned_session(
    service: ReviewWorkflowService, session_id: str, user_id: str
) -> ReviewSession:
    """Load a session, hiding other users' sessions as not found."""
    session = await service.get_session(session_id)
    if session.user_id != user_id:
        raise SessionNotFoundError(f"Review session {session_id} not found")
    return session


def _version(request: Optional[TransitionRequest]) -> Optional[int]:
    return request.expected_version if request else None


# ============ CATALOG ============


@router.get("/steps/{review_type}", response_model=StepListResponse)
async def list_steps(review_type: ReviewType):
    """Ordered checklist for a review type."""
    return StepListResponse(review_type=review_type, steps=list(steps_for(review_type)))


# ============ SESSIONS ============


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    user_id: UserIdDep,
    service: WorkflowServiceDep,
    review_type: Optional[ReviewType] = Query(default=None, alias="type"),
    limit: int = Query(default=20, ge=1, le=100),
):
    """List the user's review sessions, newest first."""
    sessions = await service.list_sessions(user_id, review_type, limit)
    return SessionListResponse(
        sessions=[ReviewSessionResponse.from_session(s) for s in sessions],
        total=len(sessions),
    )


@router.get("/sessions/{session_id}", response_model=ReviewSessionResponse)
async def get_session(
    session_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
):
    """Get a review session by ID."""
    session = await owned_session(service, session_id, user_id)
    return ReviewSessionResponse.from_session(session)


@router.post(
    "/sessions/{session_id}/steps/{step_id}/complete",
    response_model=ReviewSessionResponse,
)
async def complete_step(
    session_id: str,
    step_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
    request: Optional[CompleteStepRequest] = None,
):
    """Complete the current step with its data and advance.

    Completing the final step completes the review.
    """
    await owned_session(service, session_id, user_id)
    request = request or CompleteStepRequest()
    session = await service.complete_step(
        session_id, step_id, request.data, expected_version=request.expected_version
    )
    return ReviewSessionResponse.from_session(session)


@router.post("/sessions/{session_id}/previous", response_model=ReviewSessionResponse)
async def previous_step(
    session_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
    request: Optional[TransitionRequest] = None,
):
    await owned_session(service, session_id, user_id)
    session = await service.previous_step(session_id, expected_version=_version(request))
    return ReviewSessionResponse.from_session(session)


@router.post("/sessions/{session_id}/pause", response_model=ReviewSessionResponse)
async def pause_review(
    session_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
    request: Optional[TransitionRequest] = None,
):
    await owned_session(service, session_id, user_id)
    session = await service.pause(session_id, expected_version=_version(request))
    return ReviewSessionResponse.from_session(session)


@router.post("/sessions/{session_id}/resume", response_model=ReviewSessionResponse)
async def resume_review(
    session_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
    request: Optional[TransitionRequest] = None,
):
    await owned_session(service, session_id, user_id)
    session = await service.resume(session_id, expected_version=_version(request))
    return ReviewSessionResponse.from_session(session)


@router.post("/sessions/{session_id}/abandon", response_model=ReviewSessionResponse)
async def abandon_review(
    session_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
    request: Optional[TransitionRequest] = None,
):
    """Abandon a review. It cannot be resumed."""
    await owned_session(service, session_id, user_id)
    session = await service.abandon(session_id, expected_version=_version(request))
    return ReviewSessionResponse.from_session(session)


@router.post("/sessions/{session_id}/complete", response_model=ReviewSessionResponse)
async def complete_review(
    session_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
    request: Optional[CompleteReviewRequest] = None,
):
    """Complete a review on its final step, skipping optional steps."""
    await owned_session(service, session_id, user_id)
    request = request or CompleteReviewRequest()
    session = await service.complete(
        session_id, notes=request.notes, expected_version=request.expected_version
    )
    return ReviewSessionResponse.from_session(session)


# ============ START / LIVE ============
# Registered after the /sessions routes so /sessions/{session_id} wins over
# /{review_type}/live.


@router.post("/{review_type}/start", response_model=ReviewSessionResponse)
async def start_review(
    review_type: ReviewType,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
):
    """Start a review, or return the one already in progress.

    Returns 409 if a review of this type was already completed in the
    current period (today for daily, this week for weekly).
    """
    session = await service.start(user_id, review_type)
    return ReviewSessionResponse.from_session(session)


@router.get("/{review_type}/live", response_model=LiveSessionResponse)
async def get_live_review(
    review_type: ReviewType,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
):
    """The user's active or paused review of this type, if any."""
    session = await service.get_live_session(user_id, review_type)
    return LiveSessionResponse(
        session=ReviewSessionResponse.from_session(session) if session else None
    )


# ============ WORLD VIEW / COACHING ============


@router.get("/sessions/{session_id}/world-view", response_model=ReviewWorldView)
async def get_world_view(
    session_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
):
    """Current task store snapshot for rendering the session's steps."""
    await owned_session(service, session_id, user_id)
    return await service.get_world_view(session_id)


@router.get("/sessions/{session_id}/coaching", response_model=CoachingResponse)
async def get_coaching(
    session_id: str,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
    coaching: CoachingServiceDep,
    compact: bool = False,
):
    """Coaching prompts for the step the session is on."""
    session = await owned_session(service, session_id, user_id)
    step_id = session.current_step_id if session.is_live else COMPLETION_KEY
    view = await service.get_world_view(session_id)
    prompts = await coaching.prompts_for(user_id, view, step_id, compact=compact)
    return CoachingResponse(session_id=session_id, step_id=step_id, prompts=prompts)


# ============ HISTORY / ANALYTICS ============


@router.get("/history", response_model=ReviewHistoryResponse)
async def get_history(
    user_id: UserIdDep,
    review_repo: ReviewRepoDep,
    review_type: Optional[ReviewType] = Query(default=None, alias="type"),
    limit: int = Query(default=10, ge=1, le=100),
):
    """Completed reviews, newest first."""
    reviews = await review_repo.list_recent(user_id, review_type, limit)
    return ReviewHistoryResponse(reviews=reviews, total=len(reviews))


@router.get("/analytics", response_model=ReviewAnalytics)
async def get_analytics(user_id: UserIdDep, analytics: AnalyticsServiceDep):
    """Review streak, completion rates and reviews due today."""
    return await analytics.summary(user_id)
