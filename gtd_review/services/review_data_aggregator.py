"""
Review world view assembly.

Queries the task store for everything a review step renders from and
bundles it, together with insights over the review window, into a
ReviewWorldView. Nothing is cached: every call reads the store again.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Callable, List, Optional

import structlog

from gtd_review.core.config import ReviewConfig, review_config as default_review_config
from gtd_review.domain.models.review import ReviewInsights, ReviewType, ReviewWorldView
from gtd_review.domain.models.task import ProjectStatus, Task, TaskFilter, TaskStatus
from gtd_review.services.insights_calculator import calculate_insights
from gtd_review.services.protocols import ITaskRepository, ITaskSuggestionPolicy

log = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReviewDataAggregator:
    """Builds ReviewWorldView snapshots from the task store."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        config: Optional[ReviewConfig] = None,
        now: Callable[[], datetime] = utc_now,
        suggestion_policy: Optional[ITaskSuggestionPolicy] = None,
    ):
        """
        Initialize aggregator.

        Args:
            task_repo: Task/project store
            config: Review configuration (defaults to review_config.yaml)
            now: Clock returning an aware UTC datetime
            suggestion_policy: Optional ranking policy for suggestions
        """
        self.task_repo = task_repo
        self.config = config or default_review_config
        self.now = now
        self.suggestion_policy = suggestion_policy

    def window_days(self, review_type: ReviewType) -> int:
        if review_type == ReviewType.DAILY:
            return self.config.insights.daily_window_days
        return self.config.insights.weekly_window_days

    async def load(self, user_id: str, review_type: ReviewType) -> ReviewWorldView:
        """
        Build the world view for a review.

        Args:
            user_id: Owner of the tasks
            review_type: Decides the completion window and the daily extras

        Returns:
            ReviewWorldView (empty lists when the store has nothing)
        """
        now = self.now()
        today = now.astimezone(timezone.utc).date()

        inbox_items = await self.task_repo.list(
            TaskFilter(user_id=user_id, statuses=[TaskStatus.CAPTURED])
        )
        all_projects = await self.task_repo.list_projects(user_id, ProjectStatus.ACTIVE)
        someday_items = await self.task_repo.list(
            TaskFilter(user_id=user_id, statuses=[TaskStatus.SOMEDAY])
        )
        completed = await self._completed_in_window(user_id, review_type, now)
        insights = calculate_insights(completed, self.window_days(review_type), today)

        view = ReviewWorldView(
            review_type=review_type,
            inbox_items=inbox_items,
            all_projects=all_projects,
            someday_items=someday_items,
            completed_this_week=completed,
            insights=insights,
            generated_at=now,
        )

        if review_type == ReviewType.DAILY:
            due = await self.task_repo.list(
                TaskFilter(
                    user_id=user_id,
                    statuses=[TaskStatus.NEXT_ACTION, TaskStatus.WAITING_FOR],
                    due_on_or_before=today,
                )
            )
            view.todays_tasks = [t for t in due if t.due_date == today]
            view.overdue_tasks = [t for t in due if t.due_date and t.due_date < today]
            view.waiting_for_items = await self.task_repo.list(
                TaskFilter(user_id=user_id, statuses=[TaskStatus.WAITING_FOR])
            )

        if self.suggestion_policy is not None:
            candidates = await self.task_repo.list(
                TaskFilter(user_id=user_id, statuses=[TaskStatus.NEXT_ACTION])
            )
            view.suggestions = await self.suggestion_policy.suggest(
                user_id, review_type, candidates
            )

        log.debug(
            "review_world_view_loaded",
            user_id=user_id,
            review_type=review_type.value,
            inbox=len(inbox_items),
            projects=len(all_projects),
            completed=len(completed),
        )
        return view

    async def load_insights(
        self, user_id: str, review_type: ReviewType
    ) -> ReviewInsights:
        """Compute insights over the review window only."""
        now = self.now()
        completed = await self._completed_in_window(user_id, review_type, now)
        return calculate_insights(
            completed, self.window_days(review_type), now.astimezone(timezone.utc).date()
        )

    async def _completed_in_window(
        self, user_id: str, review_type: ReviewType, now: datetime
    ) -> List[Task]:
        # Window covers whole UTC days: today plus the preceding window_days - 1
        today = now.astimezone(timezone.utc).date()
        start_day = today - timedelta(days=self.window_days(review_type) - 1)
        return await self.task_repo.list(
            TaskFilter(
                user_id=user_id,
                statuses=[TaskStatus.COMPLETED],
                completed_after=datetime.combine(start_day, time.min, tzinfo=timezone.utc),
                completed_before=datetime.combine(
                    today + timedelta(days=1), time.min, tzinfo=timezone.utc
                ),
            )
        )
