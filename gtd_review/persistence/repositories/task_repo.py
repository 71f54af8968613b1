"""Task and project repository for database operations.

SQLite implementation of the task store the review workflow consumes
(see ITaskRepository in gtd_review.services.protocols).
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiosqlite
import structlog

from gtd_review.core.exceptions import ProjectNotFoundError, TaskNotFoundError
from gtd_review.domain.models.task import (
    Project,
    ProjectStatus,
    Task,
    TaskFilter,
    TaskPatch,
)
from gtd_review.persistence.database import (
    connect,
    from_db_date,
    from_db_timestamp,
    to_db_date,
    to_db_timestamp,
)

log = structlog.get_logger(__name__)

_TASK_COLUMNS = (
    "id",
    "user_id",
    "title",
    "description",
    "status",
    "project_id",
    "context",
    "energy_level",
    "estimated_duration",
    "due_date",
    "priority",
    "tags",
    "notes",
    "waiting_for",
    "completed_at",
    "created_at",
    "updated_at",
)


class TaskRepository:
    """Repository for task and project CRUD operations."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    # ==================== TASKS ====================

    async def create(self, task: Task) -> Task:
        """Insert a task."""
        values = self._task_to_row(task)
        placeholders = ", ".join("?" for _ in _TASK_COLUMNS)
        async with connect(self.db_path) as db:
            await db.execute(
                f"INSERT INTO tasks ({', '.join(_TASK_COLUMNS)}) VALUES ({placeholders})",
                tuple(values[c] for c in _TASK_COLUMNS),
            )
            await db.commit()
            created = await self._fetch_task(db, task.id)
            if created is None:
                raise ValueError(f"Task {task.id} not found after creation")
            return created

    async def get(self, task_id: str) -> Optional[Task]:
        """Get a task by ID."""
        async with connect(self.db_path) as db:
            return await self._fetch_task(db, task_id)

    async def list(self, task_filter: TaskFilter) -> List[Task]:
        """List tasks matching a filter, oldest first."""
        clauses: List[str] = []
        params: List[Any] = []

        if task_filter.user_id is not None:
            clauses.append("user_id = ?")
            params.append(task_filter.user_id)
        if task_filter.statuses:
            clauses.append(
                f"status IN ({', '.join('?' for _ in task_filter.statuses)})"
            )
            params.extend(s.value for s in task_filter.statuses)
        if task_filter.project_id is not None:
            clauses.append("project_id = ?")
            params.append(task_filter.project_id)
        if task_filter.completed_after is not None:
            clauses.append("completed_at >= ?")
            params.append(to_db_timestamp(task_filter.completed_after))
        if task_filter.completed_before is not None:
            clauses.append("completed_at < ?")
            params.append(to_db_timestamp(task_filter.completed_before))
        if task_filter.due_on_or_before is not None:
            clauses.append("due_date IS NOT NULL AND due_date <= ?")
            params.append(to_db_date(task_filter.due_on_or_before))

        query = "SELECT * FROM tasks"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at ASC"

        async with connect(self.db_path) as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_task(row) for row in rows]

    async def update(self, task_id: str, patch: TaskPatch) -> Task:
        """Apply a partial update to a task.

        Raises:
            TaskNotFoundError: If the task does not exist
            ProjectNotFoundError: If the patch points at an unknown project
        """
        changes = patch.changes()
        async with connect(self.db_path) as db:
            if await self._fetch_task(db, task_id) is None:
                raise TaskNotFoundError(f"Task {task_id} not found")

            if changes.get("project_id") is not None:
                if await self._fetch_project(db, changes["project_id"]) is None:
                    raise ProjectNotFoundError(
                        f"Project {changes['project_id']} not found"
                    )

            if changes:
                row_values = self._serialize_changes(changes)
                row_values["updated_at"] = to_db_timestamp(datetime.now(timezone.utc))
                assignments = ", ".join(f"{column} = ?" for column in row_values)
                await db.execute(
                    f"UPDATE tasks SET {assignments} WHERE id = ?",
                    (*row_values.values(), task_id),
                )
                await db.commit()

            log.info("task_updated", task_id=task_id, fields=sorted(changes))
            updated = await self._fetch_task(db, task_id)
            if updated is None:
                raise TaskNotFoundError(f"Task {task_id} not found")
            return updated

    async def delete(self, task_id: str) -> None:
        """Delete a task.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        async with connect(self.db_path) as db:
            cursor = await db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            await db.commit()
            if cursor.rowcount == 0:
                raise TaskNotFoundError(f"Task {task_id} not found")
        log.info("task_deleted", task_id=task_id)

    # ==================== PROJECTS ====================

    async def create_project(self, project: Project) -> Project:
        """Insert a project."""
        async with connect(self.db_path) as db:
            await db.execute(
                """INSERT INTO projects (
                    id, user_id, name, description, status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    project.id,
                    project.user_id,
                    project.name,
                    project.description,
                    project.status.value,
                    to_db_timestamp(project.created_at),
                    to_db_timestamp(project.updated_at),
                ),
            )
            await db.commit()
            created = await self._fetch_project(db, project.id)
            if created is None:
                raise ValueError(f"Project {project.id} not found after creation")
            return created

    async def get_project(self, project_id: str) -> Optional[Project]:
        """Get a project by ID."""
        async with connect(self.db_path) as db:
            return await self._fetch_project(db, project_id)

    async def list_projects(
        self, user_id: str, status: Optional[ProjectStatus] = None
    ) -> List[Project]:
        """List a user's projects, optionally restricted to one status."""
        query = "SELECT * FROM projects WHERE user_id = ?"
        params: List[Any] = [user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY created_at ASC"

        async with connect(self.db_path) as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_project(row) for row in rows]

    # ==================== HELPERS ====================

    async def _fetch_task(self, db: aiosqlite.Connection, task_id: str) -> Optional[Task]:
        cursor = await db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
        row = await cursor.fetchone()
        return self._row_to_task(row) if row else None

    async def _fetch_project(
        self, db: aiosqlite.Connection, project_id: str
    ) -> Optional[Project]:
        cursor = await db.execute("SELECT * FROM projects WHERE id = ?", (project_id,))
        row = await cursor.fetchone()
        return self._row_to_project(row) if row else None

    def _task_to_row(self, task: Task) -> Dict[str, Any]:
        row = self._serialize_changes(task.model_dump())
        row["tags"] = json.dumps(task.tags)
        row["created_at"] = to_db_timestamp(task.created_at)
        row["updated_at"] = to_db_timestamp(task.updated_at)
        return row

    @staticmethod
    def _serialize_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
        """Convert model values to column values."""
        row: Dict[str, Any] = {}
        for key, value in changes.items():
            if key in ("completed_at", "created_at", "updated_at"):
                row[key] = to_db_timestamp(value)
            elif key == "due_date":
                row[key] = to_db_date(value)
            elif key == "tags":
                row[key] = json.dumps(value or [])
            elif hasattr(value, "value"):
                row[key] = value.value
            else:
                row[key] = value
        return row

    def _row_to_task(self, row: aiosqlite.Row) -> Task:
        """Convert a database row to a Task model."""
        return Task(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            status=row["status"],
            project_id=row["project_id"],
            context=row["context"],
            energy_level=row["energy_level"],
            estimated_duration=row["estimated_duration"],
            due_date=from_db_date(row["due_date"]),
            priority=row["priority"],
            tags=json.loads(row["tags"]) if row["tags"] else [],
            notes=row["notes"],
            waiting_for=row["waiting_for"],
            completed_at=from_db_timestamp(row["completed_at"]),
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
        )

    def _row_to_project(self, row: aiosqlite.Row) -> Project:
        """Convert a database row to a Project model."""
        return Project(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            description=row["description"],
            status=row["status"],
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
        )
