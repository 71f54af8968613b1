"""
Productivity insights over a window of completed tasks.

Pure computation: no I/O, no clock. The caller supplies "today" so results
are deterministic. Calendar days are taken in UTC.
"""

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Set

from gtd_review.domain.models.review import ReviewInsights
from gtd_review.domain.models.task import Task


def _completion_day(completed_at: datetime) -> date:
    if completed_at.tzinfo is None:
        completed_at = completed_at.replace(tzinfo=timezone.utc)
    return completed_at.astimezone(timezone.utc).date()


def calculate_streak(completion_days: Set[date], today: date) -> int:
    """Consecutive days ending today with at least one completion.

    A day without completions stops the walk, so no completion today
    means a streak of 0.
    """
    streak = 0
    day = today
    while day in completion_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def rank_contexts(tasks: Iterable[Task]) -> List[str]:
    """Context values by descending frequency, ties in first-seen order."""
    counts: Counter = Counter()
    first_seen: dict = {}
    for task in tasks:
        if task.context is None:
            continue
        context = task.context.value
        counts[context] += 1
        first_seen.setdefault(context, len(first_seen))
    return sorted(counts, key=lambda c: (-counts[c], first_seen[c]))


def calculate_insights(
    completed_tasks: List[Task], window_days: int, today: date
) -> ReviewInsights:
    """
    Compute review insights.

    Args:
        completed_tasks: Tasks completed within the review window
        window_days: Length of the window in days (values below 1 count as 1)
        today: Reference day for the streak walk

    Returns:
        ReviewInsights; all zeros and no contexts for empty input
    """
    if not completed_tasks:
        return ReviewInsights()

    completion_days = {
        _completion_day(task.completed_at)
        for task in completed_tasks
        if task.completed_at is not None
    }
    projects = {task.project_id for task in completed_tasks if task.project_id}

    return ReviewInsights(
        tasks_completed=len(completed_tasks),
        projects_progressed=len(projects),
        avg_tasks_per_day=len(completed_tasks) / max(window_days, 1),
        top_contexts=rank_contexts(completed_tasks),
        streak_days=calculate_streak(completion_days, today),
    )
