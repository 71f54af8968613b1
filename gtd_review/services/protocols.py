"""
Service protocol definitions (interfaces).

Defines the collaborator interfaces the review workflow depends on, using
typing.Protocol so any structurally matching implementation can be
injected (the SQLite TaskRepository, an in-memory fake in tests, a remote
task service client).
"""

from typing import List, Optional, Protocol

from gtd_review.domain.models.review import ReviewType
from gtd_review.domain.models.task import (
    Project,
    ProjectStatus,
    Task,
    TaskFilter,
    TaskPatch,
    TaskSuggestion,
)


class ITaskRepository(Protocol):
    """
    Protocol for the task/project store.

    The review workflow only reads through list/get and writes through
    update/delete; create and create_project exist for seeding.
    """

    async def list(self, task_filter: TaskFilter) -> List[Task]:
        """
        List tasks matching a filter.

        Args:
            task_filter: Row-level filter; unset fields do not constrain

        Returns:
            Matching tasks (possibly empty)
        """
        ...

    async def get(self, task_id: str) -> Optional[Task]:
        ...

    async def list_projects(
        self, user_id: str, status: Optional[ProjectStatus] = None
    ) -> List[Project]:
        ...

    async def get_project(self, project_id: str) -> Optional[Project]:
        ...

    async def update(self, task_id: str, patch: TaskPatch) -> Task:
        """
        Apply a partial update.

        Raises:
            TaskNotFoundError: If the task does not exist
            ProjectNotFoundError: If the patch references an unknown project
        """
        ...

    async def delete(self, task_id: str) -> None:
        """
        Delete a task.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        ...

    async def create(self, task: Task) -> Task:
        ...

    async def create_project(self, project: Project) -> Project:
        ...


class ITaskSuggestionPolicy(Protocol):
    """
    Protocol for "what to do next" ranking.

    The weighting is owned by the implementation; the review workflow only
    consumes the ranked output and shows it alongside the world view.
    """

    async def suggest(
        self, user_id: str, review_type: ReviewType, candidates: List[Task]
    ) -> List[TaskSuggestion]:
        """
        Rank candidate tasks.

        Args:
            user_id: Owner of the tasks
            review_type: Review the suggestions are shown in
            candidates: Open tasks the policy may choose from

        Returns:
            Suggestions, best first
        """
        ...
