"""
Shared test fixtures.

Temporary SQLite databases, repositories, a controllable clock, and
factories for tasks and projects.
"""

import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from unittest.mock import patch

import pytest

from gtd_review.core.config import ReviewConfig
from gtd_review.domain.models.task import Project, Task, TaskContext, TaskStatus
from gtd_review.persistence.database import init_database
from gtd_review.persistence.repositories.review_repo import ReviewRepository
from gtd_review.persistence.repositories.review_session_repo import ReviewSessionRepository
from gtd_review.persistence.repositories.task_repo import TaskRepository
from gtd_review.services.review_data_aggregator import ReviewDataAggregator
from gtd_review.services.review_workflow_service import ReviewWorkflowService
from gtd_review.services.session_locks import SessionLocks

USER_ID = "user-1"

# Wednesday
FIXED_NOW = datetime(2026, 3, 11, 10, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
async def test_db():
    """Create and initialize test database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        from gtd_review.core import config

        original_path = config.settings.database_path
        config.settings.database_path = db_path

        with patch("gtd_review.persistence.database.settings", config.settings):
            yield db_path

        config.settings.database_path = original_path


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def review_config():
    return ReviewConfig()


@pytest.fixture
async def session_repo(test_db):
    return ReviewSessionRepository(str(test_db))


@pytest.fixture
async def task_repo(test_db):
    return TaskRepository(str(test_db))


@pytest.fixture
async def review_repo(test_db):
    return ReviewRepository(str(test_db))


@pytest.fixture
def aggregator(task_repo, review_config, clock):
    return ReviewDataAggregator(task_repo=task_repo, config=review_config, now=clock)


@pytest.fixture
def workflow(session_repo, aggregator, clock):
    """Workflow service wired to the test database and clock (weeks start Monday)."""
    return ReviewWorkflowService(
        session_repo=session_repo,
        aggregator=aggregator,
        locks=SessionLocks(),
        now=clock,
        week_start_day=0,
    )


@pytest.fixture
def make_task(task_repo):
    """Factory that inserts a task and returns it."""

    async def _make_task(
        title: str = "Task",
        status: TaskStatus = TaskStatus.CAPTURED,
        task_id: Optional[str] = None,
        user_id: str = USER_ID,
        **fields,
    ) -> Task:
        created_at = fields.pop("created_at", FIXED_NOW - timedelta(days=30))
        task = Task(
            id=task_id or str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            status=status,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        return await task_repo.create(task)

    return _make_task


@pytest.fixture
def make_project(task_repo):
    """Factory that inserts a project and returns it."""

    async def _make_project(
        name: str = "Project",
        project_id: Optional[str] = None,
        user_id: str = USER_ID,
        created_at: datetime = FIXED_NOW - timedelta(days=30),
        **fields,
    ) -> Project:
        project = Project(
            id=project_id or str(uuid.uuid4()),
            user_id=user_id,
            name=name,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        return await task_repo.create_project(project)

    return _make_project


@pytest.fixture
def completed_task():
    """Build (not store) a completed task for pure calculations."""

    def _completed_task(
        completed_at: datetime,
        context: Optional[TaskContext] = None,
        project_id: Optional[str] = None,
    ) -> Task:
        return Task(
            id=str(uuid.uuid4()),
            user_id=USER_ID,
            title="done",
            status=TaskStatus.COMPLETED,
            context=context,
            project_id=project_id,
            completed_at=completed_at,
            created_at=completed_at,
            updated_at=completed_at,
        )

    return _completed_task
