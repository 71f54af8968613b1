"""Review session repository for database operations."""

import json
from datetime import datetime, timezone
from typing import Optional

import aiosqlite
import structlog

from gtd_review.core.exceptions import ConcurrencyConflictError
from gtd_review.domain.models.review import (
    Review,
    ReviewInsights,
    ReviewSession,
    ReviewStatus,
    ReviewType,
)
from gtd_review.persistence.database import (
    connect,
    from_db_timestamp,
    to_db_date,
    to_db_timestamp,
)

log = structlog.get_logger(__name__)


class LiveSessionExistsError(ConcurrencyConflictError):
    """Insert lost the race against another live session of the same type."""

    pass


class ReviewSessionRepository:
    """Repository for review session CRUD operations.

    Every update is a compare-and-set on the session version: the row is
    only written if nobody else has written it since the caller loaded it.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def create(self, session: ReviewSession) -> ReviewSession:
        """Insert a new session.

        Raises:
            LiveSessionExistsError: If the user already has a live session of this type
        """
        now = datetime.now(timezone.utc)
        async with connect(self.db_path) as db:
            try:
                await db.execute(
                    """INSERT INTO review_sessions (
                        id, user_id, type, status, current_step, total_steps,
                        step_ids, completed_steps, session_data, notes, insights,
                        version, started_at, paused_at, resumed_at, completed_at,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        session.id,
                        session.user_id,
                        session.type.value,
                        session.status.value,
                        session.current_step,
                        session.total_steps,
                        json.dumps(session.step_ids),
                        json.dumps(session.completed_steps),
                        json.dumps(session.session_data),
                        session.notes,
                        self._insights_json(session.insights),
                        session.version,
                        to_db_timestamp(session.started_at),
                        to_db_timestamp(session.paused_at),
                        to_db_timestamp(session.resumed_at),
                        to_db_timestamp(session.completed_at),
                        to_db_timestamp(now),
                        to_db_timestamp(now),
                    ),
                )
            except aiosqlite.IntegrityError as e:
                log.warning(
                    "review_session_insert_conflict",
                    user_id=session.user_id,
                    review_type=session.type.value,
                    error=str(e),
                )
                raise LiveSessionExistsError(
                    f"User {session.user_id} already has a live {session.type.value} review"
                ) from e
            await db.commit()

            created = await self._fetch(db, session.id)
            if created is None:
                raise ValueError(f"Review session {session.id} not found after creation")
            return created

    async def get(self, session_id: str) -> Optional[ReviewSession]:
        """Get a session by ID."""
        async with connect(self.db_path) as db:
            return await self._fetch(db, session_id)

    async def find_live(
        self, user_id: str, review_type: ReviewType
    ) -> Optional[ReviewSession]:
        """Get the user's active or paused session of a type, if any."""
        async with connect(self.db_path) as db:
            cursor = await db.execute(
                """SELECT * FROM review_sessions
                   WHERE user_id = ? AND type = ? AND status IN ('active', 'paused')
                   ORDER BY started_at DESC
                   LIMIT 1""",
                (user_id, review_type.value),
            )
            row = await cursor.fetchone()
            return self._row_to_session(row) if row else None

    async def find_completed_since(
        self, user_id: str, review_type: ReviewType, since: datetime
    ) -> Optional[ReviewSession]:
        """Get the most recent session of a type completed at or after `since`."""
        async with connect(self.db_path) as db:
            cursor = await db.execute(
                """SELECT * FROM review_sessions
                   WHERE user_id = ? AND type = ? AND status = 'completed'
                     AND completed_at >= ?
                   ORDER BY completed_at DESC
                   LIMIT 1""",
                (user_id, review_type.value, to_db_timestamp(since)),
            )
            row = await cursor.fetchone()
            return self._row_to_session(row) if row else None

    async def list_for_user(
        self,
        user_id: str,
        review_type: Optional[ReviewType] = None,
        limit: int = 20,
    ) -> list[ReviewSession]:
        """List a user's sessions, newest first."""
        query = "SELECT * FROM review_sessions WHERE user_id = ?"
        params: list = [user_id]
        if review_type is not None:
            query += " AND type = ?"
            params.append(review_type.value)
        query += " ORDER BY started_at DESC LIMIT ?"
        params.append(limit)

        async with connect(self.db_path) as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_session(row) for row in rows]

    async def save(self, session: ReviewSession, expected_version: int) -> ReviewSession:
        """Persist a transition.

        Args:
            session: Session with the new state
            expected_version: Version the caller loaded before transitioning

        Returns:
            The session as stored, with its version bumped

        Raises:
            ConcurrencyConflictError: If the stored version moved on
        """
        async with connect(self.db_path) as db:
            await self._update(db, session, expected_version)
            await db.commit()

            saved = await self._fetch(db, session.id)
            if saved is None:
                raise ValueError(f"Review session {session.id} not found after update")
            return saved

    async def complete(
        self,
        session: ReviewSession,
        expected_version: int,
        review: Review,
        inbox_items_processed: int = 0,
    ) -> ReviewSession:
        """Persist a completed session with its history record and metrics.

        The session update, the review record and the metric increments are
        committed together; if any of them fails none is written.
        """
        metric_column = (
            "daily_reviews_completed"
            if review.type == ReviewType.DAILY
            else "weekly_reviews_completed"
        )
        metric_date = to_db_date(review.completed_at.astimezone(timezone.utc).date())

        async with connect(self.db_path) as db:
            await self._update(db, session, expected_version)

            await db.execute(
                """INSERT INTO reviews (
                    id, user_id, type, session_id, completed_at, notes,
                    duration_minutes, tasks_reviewed, projects_reviewed, progress_data
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    review.id,
                    review.user_id,
                    review.type.value,
                    review.session_id,
                    to_db_timestamp(review.completed_at),
                    review.notes,
                    review.duration_minutes,
                    review.tasks_reviewed,
                    review.projects_reviewed,
                    review.progress.model_dump_json(),
                ),
            )

            await db.execute(
                f"""INSERT INTO review_metrics (
                        user_id, date, inbox_items_processed, {metric_column}
                    ) VALUES (?, ?, ?, 1)
                    ON CONFLICT(user_id, date) DO UPDATE SET
                        inbox_items_processed = inbox_items_processed + excluded.inbox_items_processed,
                        {metric_column} = {metric_column} + 1""",
                (review.user_id, metric_date, inbox_items_processed),
            )

            await db.commit()

            saved = await self._fetch(db, session.id)
            if saved is None:
                raise ValueError(f"Review session {session.id} not found after completion")
            return saved

    async def delete(self, session_id: str) -> bool:
        """Delete a session by ID. Returns True if deleted."""
        async with connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM review_sessions WHERE id = ?", (session_id,)
            )
            await db.commit()
            return cursor.rowcount > 0

    async def _update(
        self, db: aiosqlite.Connection, session: ReviewSession, expected_version: int
    ) -> None:
        cursor = await db.execute(
            """UPDATE review_sessions SET
                status = ?, current_step = ?, completed_steps = ?, session_data = ?,
                notes = ?, insights = ?, paused_at = ?, resumed_at = ?, completed_at = ?,
                version = version + 1, updated_at = ?
               WHERE id = ? AND version = ?""",
            (
                session.status.value,
                session.current_step,
                json.dumps(session.completed_steps),
                json.dumps(session.session_data),
                session.notes,
                self._insights_json(session.insights),
                to_db_timestamp(session.paused_at),
                to_db_timestamp(session.resumed_at),
                to_db_timestamp(session.completed_at),
                to_db_timestamp(datetime.now(timezone.utc)),
                session.id,
                expected_version,
            ),
        )
        if cursor.rowcount == 0:
            log.warning(
                "review_session_version_conflict",
                session_id=session.id,
                expected_version=expected_version,
            )
            raise ConcurrencyConflictError(
                f"Review session {session.id} changed since version {expected_version}; reload it"
            )

    async def _fetch(
        self, db: aiosqlite.Connection, session_id: str
    ) -> Optional[ReviewSession]:
        cursor = await db.execute(
            "SELECT * FROM review_sessions WHERE id = ?", (session_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_session(row) if row else None

    @staticmethod
    def _insights_json(insights: Optional[ReviewInsights]) -> Optional[str]:
        return insights.model_dump_json() if insights else None

    def _row_to_session(self, row: aiosqlite.Row) -> ReviewSession:
        """Convert a database row to a ReviewSession model."""
        return ReviewSession(
            id=row["id"],
            user_id=row["user_id"],
            type=ReviewType(row["type"]),
            status=ReviewStatus(row["status"]),
            current_step=row["current_step"],
            total_steps=row["total_steps"],
            step_ids=json.loads(row["step_ids"]),
            completed_steps=json.loads(row["completed_steps"] or "[]"),
            session_data=json.loads(row["session_data"] or "{}"),
            notes=row["notes"],
            insights=ReviewInsights.model_validate_json(row["insights"])
            if row["insights"]
            else None,
            version=row["version"],
            started_at=from_db_timestamp(row["started_at"]),
            paused_at=from_db_timestamp(row["paused_at"]),
            resumed_at=from_db_timestamp(row["resumed_at"]),
            completed_at=from_db_timestamp(row["completed_at"]),
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
        )
