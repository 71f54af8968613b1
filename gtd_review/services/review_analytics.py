"""
Review habit analytics.

Streak and completion-rate figures computed from the review history and
per-day metrics written when reviews complete, plus which scheduled
reviews are still due today.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

import structlog

from gtd_review.core.config import ReviewConfig, review_config as default_review_config
from gtd_review.domain.models.review import (
    Review,
    ReviewAnalytics,
    ReviewMetrics,
    ReviewType,
)
from gtd_review.persistence.repositories.review_repo import ReviewRepository
from gtd_review.services.review_data_aggregator import utc_now
from gtd_review.services.review_workflow_service import period_start

log = structlog.get_logger(__name__)

STREAK_MILESTONES = (7, 14, 30, 60, 90, 180, 365)

# Enough history to see the longest milestone streak
STREAK_LOOKBACK = 400


def _utc_day(value: datetime) -> date:
    return value.astimezone(timezone.utc).date()


def review_streak(reviews: Iterable[Review], today: date) -> int:
    """Consecutive days, ending today, with at least one completed daily review."""
    days = {_utc_day(r.completed_at) for r in reviews if r.type == ReviewType.DAILY}
    streak = 0
    day = today
    while day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def completion_rate(metrics: Iterable[ReviewMetrics], days: int, today: date) -> int:
    """Percentage of the last `days` days (today included) with a daily review."""
    if days <= 0:
        return 0
    first_day = today - timedelta(days=days - 1)
    reviewed_days = {
        m.date
        for m in metrics
        if m.daily_reviews_completed > 0 and first_day <= m.date <= today
    }
    return round(len(reviewed_days) / days * 100)


def next_milestone(streak: int) -> int:
    for milestone in STREAK_MILESTONES:
        if milestone > streak:
            return milestone
    return streak + 30


class ReviewAnalyticsService:
    """Builds ReviewAnalytics summaries from stored history."""

    def __init__(
        self,
        review_repo: ReviewRepository,
        config: Optional[ReviewConfig] = None,
        now: Callable[[], datetime] = utc_now,
        week_start_day: int = 0,
    ):
        self.review_repo = review_repo
        self.config = config or default_review_config
        self.now = now
        self.week_start_day = week_start_day

    async def summary(self, user_id: str, recent_limit: int = 10) -> ReviewAnalytics:
        """
        Summarize a user's review habit.

        Args:
            user_id: Reviewer
            recent_limit: Number of recent reviews to include

        Returns:
            ReviewAnalytics for today (UTC)
        """
        now = self.now()
        today = _utc_day(now)

        daily_reviews = await self.review_repo.list_recent(
            user_id, ReviewType.DAILY, limit=STREAK_LOOKBACK
        )
        metrics = await self.review_repo.list_metrics(
            user_id, since=today - timedelta(days=29)
        )
        recent = await self.review_repo.list_recent(user_id, limit=recent_limit)

        streak = review_streak(daily_reviews, today)
        analytics = ReviewAnalytics(
            user_id=user_id,
            streak_days=streak,
            next_milestone=next_milestone(streak),
            completion_rate_7d=completion_rate(metrics, 7, today),
            completion_rate_30d=completion_rate(metrics, 30, today),
            due_reviews=await self.due_reviews(user_id, now),
            recent_reviews=recent,
        )
        log.debug(
            "review_analytics_computed",
            user_id=user_id,
            streak_days=analytics.streak_days,
            completion_rate_7d=analytics.completion_rate_7d,
        )
        return analytics

    async def due_reviews(self, user_id: str, now: datetime) -> List[ReviewType]:
        """Review types scheduled for today that have not been completed this period."""
        weekday = _utc_day(now).weekday()
        due: List[ReviewType] = []
        for schedule in self.config.schedules:
            if not schedule.enabled or weekday not in schedule.days:
                continue
            review_type = ReviewType(schedule.type)
            latest = await self.review_repo.list_recent(user_id, review_type, limit=1)
            since = period_start(review_type, now, self.week_start_day)
            if latest and latest[0].completed_at >= since:
                continue
            due.append(review_type)
        return due
