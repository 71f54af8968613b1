"""
Task actions taken from inside a review step.

Each action is forwarded to the task store and answered with a fresh
world view so the step re-renders from current data. The review session
is never written here: a failed action leaves it exactly as it was.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

import structlog

from gtd_review.core.exceptions import (
    ProjectNotFoundError,
    TaskNotFoundError,
    ValidationError,
)
from gtd_review.domain.models.review import ReviewSession, ReviewWorldView
from gtd_review.domain.models.task import TaskPatch, TaskStatus
from gtd_review.services.protocols import ITaskRepository
from gtd_review.services.review_data_aggregator import ReviewDataAggregator, utc_now

log = structlog.get_logger(__name__)


class TaskAction(str, Enum):
    COMPLETE = "complete"
    CONVERT_TO_NEXT_ACTION = "convert_to_next_action"
    CONVERT_TO_PROJECT = "convert_to_project"
    DEFER_TO_SOMEDAY = "defer_to_someday"
    REASSIGN_PROJECT = "reassign_project"
    DEFER_TO_TOMORROW = "defer_to_tomorrow"
    DELETE = "delete"


class TaskActionDispatcher:
    """Applies review task actions through the task store."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        aggregator: ReviewDataAggregator,
        now: Callable[[], datetime] = utc_now,
    ):
        self.task_repo = task_repo
        self.aggregator = aggregator
        self.now = now

    async def dispatch(
        self,
        session: ReviewSession,
        task_id: str,
        action: TaskAction,
        project_id: Optional[str] = None,
    ) -> ReviewWorldView:
        """
        Route an action by name.

        Args:
            session: Review the action is taken from
            task_id: Task to act on
            action: What to do
            project_id: Target project, required for reassign_project

        Returns:
            Refreshed world view for the session's user and review type

        Raises:
            ValidationError: If reassign_project is missing project_id
            TaskNotFoundError: If the task does not exist for this user
            RepositoryError: If the task store fails
        """
        if action == TaskAction.COMPLETE:
            return await self.complete(session, task_id)
        if action == TaskAction.CONVERT_TO_NEXT_ACTION:
            return await self.convert_to_next_action(session, task_id)
        if action == TaskAction.CONVERT_TO_PROJECT:
            return await self.convert_to_project(session, task_id)
        if action == TaskAction.DEFER_TO_SOMEDAY:
            return await self.defer_to_someday(session, task_id)
        if action == TaskAction.REASSIGN_PROJECT:
            if not project_id:
                raise ValidationError("reassign_project requires a project_id")
            return await self.reassign_project(session, task_id, project_id)
        if action == TaskAction.DEFER_TO_TOMORROW:
            return await self.defer_to_tomorrow(session, task_id)
        return await self.delete(session, task_id)

    async def complete(self, session: ReviewSession, task_id: str) -> ReviewWorldView:
        return await self._update(
            session,
            task_id,
            TaskPatch(status=TaskStatus.COMPLETED, completed_at=self.now()),
            TaskAction.COMPLETE,
        )

    async def convert_to_next_action(
        self, session: ReviewSession, task_id: str
    ) -> ReviewWorldView:
        return await self._update(
            session,
            task_id,
            TaskPatch(status=TaskStatus.NEXT_ACTION),
            TaskAction.CONVERT_TO_NEXT_ACTION,
        )

    async def convert_to_project(
        self, session: ReviewSession, task_id: str
    ) -> ReviewWorldView:
        return await self._update(
            session,
            task_id,
            TaskPatch(status=TaskStatus.PROJECT),
            TaskAction.CONVERT_TO_PROJECT,
        )

    async def defer_to_someday(
        self, session: ReviewSession, task_id: str
    ) -> ReviewWorldView:
        return await self._update(
            session,
            task_id,
            TaskPatch(status=TaskStatus.SOMEDAY),
            TaskAction.DEFER_TO_SOMEDAY,
        )

    async def reassign_project(
        self, session: ReviewSession, task_id: str, project_id: str
    ) -> ReviewWorldView:
        """
        Move a task into one of the reviewer's projects.

        Raises:
            ProjectNotFoundError: If the project does not exist for this user
        """
        project = await self.task_repo.get_project(project_id)
        if project is None or project.user_id != session.user_id:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        return await self._update(
            session,
            task_id,
            TaskPatch(project_id=project_id),
            TaskAction.REASSIGN_PROJECT,
        )

    async def defer_to_tomorrow(
        self, session: ReviewSession, task_id: str
    ) -> ReviewWorldView:
        """Move the due date to the next UTC calendar day."""
        tomorrow = self.now().astimezone(timezone.utc).date() + timedelta(days=1)
        return await self._update(
            session,
            task_id,
            TaskPatch(due_date=tomorrow),
            TaskAction.DEFER_TO_TOMORROW,
        )

    async def delete(self, session: ReviewSession, task_id: str) -> ReviewWorldView:
        await self._check_owned(session, task_id)
        await self.task_repo.delete(task_id)
        log.info(
            "review_task_action_applied",
            session_id=session.id,
            task_id=task_id,
            action=TaskAction.DELETE.value,
        )
        return await self.aggregator.load(session.user_id, session.type)

    async def _update(
        self,
        session: ReviewSession,
        task_id: str,
        patch: TaskPatch,
        action: TaskAction,
    ) -> ReviewWorldView:
        await self._check_owned(session, task_id)
        await self.task_repo.update(task_id, patch)
        log.info(
            "review_task_action_applied",
            session_id=session.id,
            task_id=task_id,
            action=action.value,
        )
        return await self.aggregator.load(session.user_id, session.type)

    async def _check_owned(self, session: ReviewSession, task_id: str) -> None:
        task = await self.task_repo.get(task_id)
        if task is None or task.user_id != session.user_id:
            raise TaskNotFoundError(f"Task {task_id} not found")
