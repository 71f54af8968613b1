"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header

from gtd_review.core.config import review_config, settings
from gtd_review.persistence.repositories.review_repo import ReviewRepository
from gtd_review.persistence.repositories.review_session_repo import ReviewSessionRepository
from gtd_review.persistence.repositories.task_repo import TaskRepository
from gtd_review.services.coaching_service import CoachingPromptLibrary, CoachingService
from gtd_review.services.review_analytics import ReviewAnalyticsService
from gtd_review.services.review_data_aggregator import ReviewDataAggregator
from gtd_review.services.review_workflow_service import ReviewWorkflowService
from gtd_review.services.session_locks import SessionLocks


def get_review_session_repository() -> ReviewSessionRepository:
    """FastAPI dependency injection for ReviewSessionRepository.

    Each request gets a new repository pointed at the configured database.
    """
    return ReviewSessionRepository(str(settings.database_path))


def get_review_repository() -> ReviewRepository:
    return ReviewRepository(str(settings.database_path))


def get_task_repository() -> TaskRepository:
    return TaskRepository(str(settings.database_path))


@lru_cache(maxsize=1)
def get_shared_session_locks() -> SessionLocks:
    """Process-wide transition locks.

    Locks only serialize transitions if every request sees the same
    registry, so it is created once per process and reused.
    """
    return SessionLocks()


@lru_cache(maxsize=1)
def get_shared_prompt_library() -> CoachingPromptLibrary:
    """Coaching prompts, parsed once per process."""
    return CoachingPromptLibrary()


def get_user_id(
    x_user_id: Annotated[Optional[str], Header(alias="X-User-ID")] = None,
) -> str:
    """Reviewer identity from the X-User-ID header, or the configured default."""
    return x_user_id or settings.default_user_id


TaskRepoDep = Annotated[TaskRepository, Depends(get_task_repository)]
ReviewSessionRepoDep = Annotated[
    ReviewSessionRepository, Depends(get_review_session_repository)
]
ReviewRepoDep = Annotated[ReviewRepository, Depends(get_review_repository)]
UserIdDep = Annotated[str, Depends(get_user_id)]


def get_data_aggregator(task_repo: TaskRepoDep) -> ReviewDataAggregator:
    return ReviewDataAggregator(task_repo=task_repo, config=review_config)


def get_workflow_service(
    session_repo: ReviewSessionRepoDep,
    aggregator: Annotated[ReviewDataAggregator, Depends(get_data_aggregator)],
) -> ReviewWorkflowService:
    """FastAPI dependency injection for ReviewWorkflowService.

    Repositories are per request; the transition locks are shared.
    """
    return ReviewWorkflowService(
        session_repo=session_repo,
        aggregator=aggregator,
        locks=get_shared_session_locks(),
        week_start_day=settings.week_start_day,
    )


def get_analytics_service(review_repo: ReviewRepoDep) -> ReviewAnalyticsService:
    return ReviewAnalyticsService(
        review_repo=review_repo,
        config=review_config,
        week_start_day=settings.week_start_day,
    )


def get_coaching_service(task_repo: TaskRepoDep) -> CoachingService:
    return CoachingService(
        task_repo=task_repo,
        library=get_shared_prompt_library(),
        config=review_config,
    )


WorkflowServiceDep = Annotated[ReviewWorkflowService, Depends(get_workflow_service)]
AnalyticsServiceDep = Annotated[ReviewAnalyticsService, Depends(get_analytics_service)]
CoachingServiceDep = Annotated[CoachingService, Depends(get_coaching_service)]
