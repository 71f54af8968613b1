"""
Task action routes.

Actions a user takes on a task while a review is open. The response is the
refreshed world view; the review session itself is not modified.
"""

from fastapi import APIRouter

from gtd_review.api.dependencies import UserIdDep, WorkflowServiceDep
from gtd_review.api.routes.reviews import owned_session
from gtd_review.api.schemas import TaskActionRequest
from gtd_review.domain.models.review import ReviewWorldView

router = APIRouter(prefix="/reviews/sessions", tags=["tasks"])


@router.post(
    "/{session_id}/tasks/{task_id}/actions",
    response_model=ReviewWorldView,
)
async def apply_task_action(
    session_id: str,
    task_id: str,
    request: TaskActionRequest,
    user_id: UserIdDep,
    service: WorkflowServiceDep,
):
    """Complete, reclassify, defer, reassign or delete a task from a review."""
    await owned_session(service, session_id, user_id)
    return await service.apply_task_action(
        session_id, task_id, request.action, project_id=request.project_id
    )
