"""Review history and metrics repository.

Records are written by ReviewSessionRepository.complete() in the same
transaction as the session; this repository only reads them.
"""

from datetime import date
from typing import List, Optional

import aiosqlite

from gtd_review.domain.models.review import (
    Review,
    ReviewMetrics,
    ReviewProgress,
    ReviewType,
)
from gtd_review.persistence.database import (
    connect,
    from_db_date,
    from_db_timestamp,
    to_db_date,
)


class ReviewRepository:
    """Repository for completed review records and daily review metrics."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def list_recent(
        self,
        user_id: str,
        review_type: Optional[ReviewType] = None,
        limit: int = 10,
    ) -> List[Review]:
        """Get the most recently completed reviews, newest first."""
        query = "SELECT * FROM reviews WHERE user_id = ?"
        params: list = [user_id]
        if review_type is not None:
            query += " AND type = ?"
            params.append(review_type.value)
        query += " ORDER BY completed_at DESC LIMIT ?"
        params.append(limit)

        async with connect(self.db_path) as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_review(row) for row in rows]

    async def get_by_session(self, session_id: str) -> Optional[Review]:
        """Get the review record written for a session, if it completed."""
        async with connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT * FROM reviews WHERE session_id = ?", (session_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_review(row) if row else None

    async def list_metrics(self, user_id: str, since: date) -> List[ReviewMetrics]:
        """Get per-day metrics from `since` (inclusive), newest first."""
        async with connect(self.db_path) as db:
            cursor = await db.execute(
                """SELECT * FROM review_metrics
                   WHERE user_id = ? AND date >= ?
                   ORDER BY date DESC""",
                (user_id, to_db_date(since)),
            )
            rows = await cursor.fetchall()
            return [
                ReviewMetrics(
                    user_id=row["user_id"],
                    date=from_db_date(row["date"]),
                    inbox_items_processed=row["inbox_items_processed"],
                    daily_reviews_completed=row["daily_reviews_completed"],
                    weekly_reviews_completed=row["weekly_reviews_completed"],
                )
                for row in rows
            ]

    def _row_to_review(self, row: aiosqlite.Row) -> Review:
        """Convert a database row to a Review model."""
        return Review(
            id=row["id"],
            user_id=row["user_id"],
            type=ReviewType(row["type"]),
            session_id=row["session_id"],
            completed_at=from_db_timestamp(row["completed_at"]),
            notes=row["notes"],
            duration_minutes=row["duration_minutes"],
            tasks_reviewed=row["tasks_reviewed"],
            projects_reviewed=row["projects_reviewed"],
            progress=ReviewProgress.model_validate_json(row["progress_data"]),
        )
